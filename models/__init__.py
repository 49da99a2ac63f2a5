from .user import User
from .community import Community
from .course import Course, AccessTypeEnum, CourseStatusEnum
from .subscription_tier import SubscriptionTier, TierFeatureEnum
from .transaction import Transaction, TransactionStatusEnum, ALLOWED_TRANSITIONS
from .membership import Membership, MembershipStatusEnum
from .webhook_log import WebhookLog
