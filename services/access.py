"""
Course access decisions.

A course carries one or more access policies; the user gets in if any one of
them passes. Policies are typed values built from the course's stored tags,
and each policy type has exactly one evaluator. Nothing here touches the
database: callers pass in the membership (already expiry-checked by
MembershipManager.get_active_membership) and the community's tier catalog.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from models.course import AccessTypeEnum
from models.membership import MembershipStatusEnum
from utils.helpers import split_email_list, utcnow


# --- Policies ---

@dataclass(frozen=True)
class OpenAccess:
    pass


@dataclass(frozen=True)
class PaidSubscription:
    pass


@dataclass(frozen=True)
class RatingGate:
    required: Optional[int]


@dataclass(frozen=True)
class DelayedAccess:
    days: int = 0


@dataclass(frozen=True)
class PromoCodeGate:
    code: Optional[str]


@dataclass(frozen=True)
class GiftedAccess:
    emails: FrozenSet[str] = field(default_factory=frozenset)


# One builder per stored tag. A tag missing here is a KeyError, not a silent deny.
_POLICY_BUILDERS = {
    AccessTypeEnum.OPEN: lambda course: OpenAccess(),
    AccessTypeEnum.PAID_SUBSCRIPTION: lambda course: PaidSubscription(),
    AccessTypeEnum.BY_RATING_LEVEL: lambda course: RatingGate(required=course.required_rating),
    AccessTypeEnum.DELAYED: lambda course: DelayedAccess(days=course.delay_days or 0),
    AccessTypeEnum.PROMO_CODE: lambda course: PromoCodeGate(code=course.promo_code),
    AccessTypeEnum.GIFTED: lambda course: GiftedAccess(emails=frozenset(split_email_list(course.gifted_emails))),
}


def policies_for_course(course):
    """
    Builds the typed access policies of a course, in configured order.

    A course without tags (or with only unknown tags in `access_types` and no
    legacy tag) is open.
    """
    return [_POLICY_BUILDERS[tag](course) for tag in course.access_tags()]


# --- Evaluation ---

@dataclass(frozen=True)
class AccessContext:
    """Everything a policy evaluator may look at for one (course, user) decision."""
    course: object
    user: object
    membership: object
    tier: object
    unlocked_promo_course_ids: FrozenSet[str]
    now: object


def _live_membership(ctx):
    membership = ctx.membership
    if membership is None or membership.status != MembershipStatusEnum.ACTIVE:
        return None
    if membership.is_expired(ctx.now):
        return None
    return membership


def _eval_open(policy, ctx):
    return True


def _eval_paid(policy, ctx):
    if _live_membership(ctx) is None or ctx.tier is None:
        return False
    return ctx.tier.grants_course(ctx.course.id)


def _eval_rating(policy, ctx):
    rating = getattr(ctx.user, 'rating', None)
    if rating is None or policy.required is None:
        return False
    return rating >= policy.required


def _eval_delayed(policy, ctx):
    membership = _live_membership(ctx)
    if membership is None or membership.started_at is None:
        return False
    # Whole days elapsed, rounded down.
    return (ctx.now - membership.started_at).days >= policy.days


def _eval_promo(policy, ctx):
    # Only an earlier, successful code entry counts; the code itself never grants.
    return ctx.course.id in ctx.unlocked_promo_course_ids


def _eval_gifted(policy, ctx):
    email = (getattr(ctx.user, 'email', None) or '').strip().lower()
    return bool(email) and email in policy.emails


_EVALUATORS = {
    OpenAccess: _eval_open,
    PaidSubscription: _eval_paid,
    RatingGate: _eval_rating,
    DelayedAccess: _eval_delayed,
    PromoCodeGate: _eval_promo,
    GiftedAccess: _eval_gifted,
}


def evaluate_policy(policy, ctx):
    """Runs the evaluator registered for the policy's type."""
    return _EVALUATORS[type(policy)](policy, ctx)


def is_owner(course, user):
    """True if the user created the course's community."""
    community = getattr(course, 'community', None)
    return user is not None and community is not None and community.creator_id == user.id


def current_tier(membership, tier_catalog):
    """Looks up the membership's tier in the catalog (active tiers only); None if it has no usable tier."""
    if membership is None or not membership.subscription_tier_id:
        return None
    tier = (tier_catalog or {}).get(membership.subscription_tier_id)
    if tier is None or not tier.is_active:
        return None
    return tier


def has_access(course, user, membership, tier_catalog, unlocked_promo_course_ids=None, now=None):
    """
    Decides whether `user` may open `course`.

    Args:
        course (Course): The course, with its access configuration.
        user (User): The requesting user.
        membership (Membership | None): The user's membership in the course's community.
        tier_catalog (dict): Active tiers of the community, keyed by tier id.
        unlocked_promo_course_ids (iterable, optional): Course ids the user unlocked with a promo code.
        now (datetime, optional): Evaluation time (naive UTC). Defaults to the current time.

    Returns:
        bool: True if the community owner is asking, if the course was promo-unlocked,
              or if any of the course's policies passes.
    """
    if is_owner(course, user):
        return True

    unlocked = frozenset(unlocked_promo_course_ids or ())
    if course.id in unlocked:
        return True

    ctx = AccessContext(
        course=course,
        user=user,
        membership=membership,
        tier=current_tier(membership, tier_catalog),
        unlocked_promo_course_ids=unlocked,
        now=now or utcnow(),
    )
    return any(evaluate_policy(policy, ctx) for policy in policies_for_course(course))


def promo_code_matches(course, promo_input):
    """
    Checks a user-entered promo code against the course's code.
    Comparison ignores case and surrounding whitespace; a course without a code never matches.
    """
    expected = (course.promo_code or '').strip().lower()
    given = (promo_input or '').strip().lower()
    return bool(expected) and given == expected


def has_tier_feature(feature, membership, tier_catalog, owner=False, now=None):
    """
    Checks a community-level feature (e.g. private chat, group calls) for a member.

    Args:
        feature (TierFeatureEnum | str): The feature key.
        owner (bool, optional): Community owners have every feature.
    """
    if owner:
        return True
    if membership is None or not membership.is_active(now or utcnow()):
        return False
    tier = current_tier(membership, tier_catalog)
    return tier is not None and tier.has_feature(feature)


def accessible_courses(courses, user, membership, tier_catalog, unlocked_promo_course_ids=None, now=None):
    """Returns (course, has_access) pairs for a list of courses, evaluated at one instant."""
    now = now or utcnow()
    return [
        (course, has_access(course, user, membership, tier_catalog, unlocked_promo_course_ids, now=now))
        for course in courses
    ]
