import enum
from extensions import db # Import the SQLAlchemy instance.
from utils.helpers import new_uuid, utcnow

class MembershipStatusEnum(enum.Enum):
    """
    Enumeration for the possible statuses of a user's membership in a community.
    Memberships are never deleted; they move to EXPIRED or CANCELED instead.
    """
    ACTIVE = 'active'
    CANCELED = 'canceled'
    EXPIRED = 'expired'


class Membership(db.Model):
    """
    A user's standing in a community: the current tier, its status and its validity window.

    At most one row exists per (user, community); renewals update that row in place.
    `expires_at` NULL means the membership does not expire (free tiers).
    """
    __tablename__ = 'memberships' # Specifies the database table name.

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)

    # --- Foreign Keys ---
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    community_id = db.Column(db.String(36), db.ForeignKey('communities.id'), nullable=False, index=True)
    # NULL means the member has no paid tier.
    subscription_tier_id = db.Column(db.String(36), db.ForeignKey('subscription_tiers.id'), nullable=True, index=True)

    # --- Lifecycle ---
    status = db.Column(db.Enum(MembershipStatusEnum), nullable=False, default=MembershipStatusEnum.ACTIVE, index=True)
    started_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=True)
    renewal_period = db.Column(db.String(20), nullable=True, default='monthly')
    # Last gateway payment id that (re)activated the membership.
    external_subscription_id = db.Column(db.String(100), nullable=True)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # --- Relationships ---
    subscription_tier = db.relationship('SubscriptionTier')
    community = db.relationship('Community')

    __table_args__ = (
        # The upsert in MembershipManager.activate_or_renew is keyed on this constraint.
        db.UniqueConstraint('user_id', 'community_id', name='uq_membership_user_community'),
        db.CheckConstraint('expires_at IS NULL OR expires_at >= started_at', name='ck_membership_expiry_after_start'),
    )

    def is_expired(self, now=None):
        """True if the membership has an expiry date that lies in the past."""
        now = now or utcnow()
        return self.expires_at is not None and self.expires_at < now

    def is_active(self, now=None):
        """True if the membership is ACTIVE and not past its expiry date."""
        return self.status == MembershipStatusEnum.ACTIVE and not self.is_expired(now)

    def to_dict(self, now=None):
        """
        Serializes the membership for the API, including the derived `isExpired` and `isActive`
        flags (computed at read time, never stored).
        """
        tier = self.subscription_tier
        community = self.community
        return {
            'id': self.id,
            'user_id': self.user_id,
            'community_id': self.community_id,
            'subscription_tier_id': self.subscription_tier_id,
            'status': self.status.value,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'renewal_period': self.renewal_period,
            'external_subscription_id': self.external_subscription_id,
            'subscription_tier': tier.to_dict() if tier else None,
            'community': {'id': community.id, 'name': community.name} if community else None,
            'isExpired': self.is_expired(now),
            'isActive': self.is_active(now),
        }

    def __repr__(self):
        return f'<Membership {self.user_id} - Community {self.community_id} - Status {self.status.value}>'
