import enum
from extensions import db # Import the SQLAlchemy instance from extensions.
from utils.helpers import new_uuid, utcnow

class TierFeatureEnum(enum.Enum):
    """
    Feature keys a subscription tier can carry in its `features` list.
    """
    COMMUNITY_ACCESS = 'community_access' # Community chat.
    COURSES_ALL = 'courses_all'           # Every course in the community.
    COURSES_SELECTED = 'courses_selected' # Only the courses listed in selected_course_ids.
    GROUP_CALLS = 'group_calls'           # Weekly live calls.
    PRIVATE_CHAT = 'private_chat'         # Private messages with the owner.


class SubscriptionTier(db.Model):
    """
    Represents a priced subscription tier offered by a community.

    Stores the monthly/yearly price, the ordered list of feature keys, the explicit
    course entitlement list (authoritative when only 'courses_selected' is present),
    and an optional external payment URL. Tiers are only consulted while `is_active`.
    """
    __tablename__ = 'subscription_tiers' # Specifies the database table name.

    # --- Tier Identification and Details ---
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    community_id = db.Column(db.String(36), db.ForeignKey('communities.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # --- Pricing ---
    # Numeric type for precise decimal values (e.g., 990.00). Converted to minor units for the gateway.
    price_monthly = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # Shown to users but renewals are always monthly.
    price_yearly = db.Column(db.Numeric(10, 2), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default='RUB')
    is_free = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    # --- Entitlements ---
    # Ordered list of TierFeatureEnum values, e.g. ["community_access", "courses_all"].
    features = db.Column(db.JSON, nullable=True)
    # Course ids granted when the tier has 'courses_selected' (and not 'courses_all').
    selected_course_ids = db.Column(db.JSON, nullable=True)

    # --- External checkout ---
    # When set, purchases go straight to this URL and bypass the gateway/webhook flow.
    payment_url = db.Column(db.String(2048), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def has_feature(self, feature):
        """
        Checks whether the tier's feature list contains `feature` (a TierFeatureEnum member or its value).
        """
        key = feature.value if isinstance(feature, TierFeatureEnum) else feature
        return key in (self.features or [])

    def grants_course(self, course_id):
        """
        Decides whether this tier entitles its holder to the given course.

        'courses_all' grants every course; otherwise 'courses_selected' grants only
        the listed course ids. Inactive tiers grant nothing.
        """
        if not self.is_active:
            return False
        if self.has_feature(TierFeatureEnum.COURSES_ALL):
            return True
        if self.has_feature(TierFeatureEnum.COURSES_SELECTED):
            return course_id in (self.selected_course_ids or [])
        return False

    def to_dict(self):
        return {
            'id': self.id,
            'communityId': self.community_id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'priceMonthly': float(self.price_monthly) if self.price_monthly is not None else None,
            'priceYearly': float(self.price_yearly) if self.price_yearly is not None else None,
            'currency': self.currency,
            'isFree': self.is_free,
            'isActive': self.is_active,
            'features': list(self.features or []),
            'selectedCourseIds': list(self.selected_course_ids or []),
            'paymentUrl': self.payment_url,
        }

    def __repr__(self):
        return f'<SubscriptionTier {self.name} - {self.price_monthly}>'
