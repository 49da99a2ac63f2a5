from extensions import db
import bcrypt
from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).
from utils.helpers import new_uuid, utcnow

class User(db.Model, UserMixin):
    """
    Represents a platform user (the profile the access rules read).

    Stores authentication details, the community rating used by rating-gated courses,
    and links to the user's memberships. UserMixin provides the methods Flask-Login
    expects (is_authenticated, get_id).
    """
    __tablename__ = 'users' # Specifies the database table name.

    # --- Basic User Information ---
    id = db.Column(db.String(36), primary_key=True, default=new_uuid) # UUID string, matches the ids used by the web client.
    email = db.Column(db.String(255), unique=True, nullable=False, index=True) # Used for login and for gifted-course matching.
    password_hash = db.Column(db.String(128), nullable=True) # bcrypt hash. Nullable for accounts created by an external identity provider.
    full_name = db.Column(db.String(100), nullable=True)

    # --- Profile ---
    # Community rating; compared against Course.required_rating. NULL means "no rating yet" and never satisfies a rating gate.
    rating = db.Column(db.Integer, nullable=True, default=0)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # --- Relationships ---
    # 'lazy=dynamic' keeps user.memberships as a query so callers can filter by community.
    memberships = db.relationship('Membership', backref='user', lazy='dynamic')

    def set_password(self, password):
        """
        Hashes the provided password and stores it in `password_hash`.

        Args:
            password (str): The plain-text password to hash.
        """
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """
        Verifies if the provided password matches the stored hashed password.

        Returns:
            bool: True if the password matches. False if it does not, or if no hash is stored.
        """
        if self.password_hash:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        return False # No password hash stored, so password check fails.

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'fullName': self.full_name,
            'rating': self.rating,
        }

    def __repr__(self):
        return f'<User {self.email}>'
