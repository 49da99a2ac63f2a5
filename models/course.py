import enum
from extensions import db
from utils.helpers import new_uuid, utcnow

class AccessTypeEnum(enum.Enum):
    """
    Enumeration of the course access policies.
    A course lists one or more of these; access is granted if any one of them passes.
    """
    OPEN = 'open'                           # Anyone can open the course.
    PAID_SUBSCRIPTION = 'paid_subscription' # Granted by the user's current subscription tier.
    BY_RATING_LEVEL = 'by_rating_level'     # Granted once the user's rating reaches required_rating.
    DELAYED = 'delayed'                     # Granted delay_days after the membership started.
    PROMO_CODE = 'promo_code'               # Granted after the user entered the course's promo code.
    GIFTED = 'gifted'                       # Granted to the emails listed in gifted_emails.

    @staticmethod
    def from_value(value):
        """
        Maps a stored tag string to an AccessTypeEnum member.
        Returns None for unknown tags so that bad data never grants access.
        """
        try:
            return AccessTypeEnum(value)
        except ValueError:
            return None


class CourseStatusEnum(enum.Enum):
    DRAFT = 'draft'
    PUBLISHED = 'published'


class Course(db.Model):
    """
    A course inside a community, together with its access configuration.

    `access_types` holds the ordered list of policy tags (strings, as written by the web client).
    `access_type` is the single-tag column older courses were saved with; it is only consulted
    when `access_types` is empty. The policy parameters are only meaningful for their tag.
    """
    __tablename__ = 'courses'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    community_id = db.Column(db.String(36), db.ForeignKey('communities.id'), nullable=False, index=True)
    author_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    title = db.Column(db.String(255), nullable=False)
    status = db.Column(db.Enum(CourseStatusEnum), nullable=False, default=CourseStatusEnum.PUBLISHED, index=True)

    # --- Access configuration ---
    access_types = db.Column(db.JSON, nullable=True) # e.g. ["paid_subscription", "by_rating_level"]
    access_type = db.Column(db.String(50), nullable=True) # Legacy single tag.
    required_rating = db.Column(db.Integer, nullable=True) # by_rating_level parameter.
    delay_days = db.Column(db.Integer, nullable=True)      # delayed parameter.
    promo_code = db.Column(db.String(100), nullable=True)  # promo_code parameter.
    gifted_emails = db.Column(db.Text, nullable=True)      # gifted parameter, comma-separated.

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def access_tags(self):
        """
        Returns the course's access policies as AccessTypeEnum members, in configured order.

        An empty or missing configuration (and no legacy tag) means the course is open.
        Unknown tag strings are dropped.
        """
        raw_tags = self.access_types or []
        if not raw_tags:
            raw_tags = [self.access_type or AccessTypeEnum.OPEN.value]
        tags = []
        for raw in raw_tags:
            tag = AccessTypeEnum.from_value(raw)
            if tag is not None and tag not in tags:
                tags.append(tag)
        return tags

    def to_dict(self):
        return {
            'id': self.id,
            'communityId': self.community_id,
            'title': self.title,
            'status': self.status.value if self.status else None,
            'accessTypes': [tag.value for tag in self.access_tags()],
            'requiredRating': self.required_rating,
            'delayDays': self.delay_days,
        }

    def __repr__(self):
        return f'<Course {self.title}>'
