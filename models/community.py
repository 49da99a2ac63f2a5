from extensions import db
from utils.helpers import new_uuid, utcnow

class Community(db.Model):
    """
    A community: the scope for subscription tiers, courses and memberships.

    Only the fields the billing core needs are modeled here; the owner
    (creator_id) always has access to every course in the community.
    """
    __tablename__ = 'communities'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(255), nullable=False)
    creator_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    creator = db.relationship('User')
    tiers = db.relationship('SubscriptionTier', backref='community', lazy='dynamic')
    courses = db.relationship('Course', backref='community', lazy='dynamic')

    def __repr__(self):
        return f'<Community {self.name}>'
