from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy import select

from exceptions import InvalidState, NotFound
from extensions import db
from forms import PromoCodeForm, form_error_message
from models.community import Community
from models.course import Course, CourseStatusEnum
from models.subscription_tier import TierFeatureEnum
from services import membership_manager, tier_registry
from services.access import accessible_courses, has_access, has_tier_feature, is_owner, promo_code_matches
from utils.helpers import parse_id_list, utcnow

# Blueprint for community catalog and course access checks.
# Promo unlocks are not stored server-side: the client keeps the unlocked course ids
# returned by POST /courses/<id>/promo and sends them back as ?unlocked=<id,id>.
courses_bp = Blueprint('courses', __name__, url_prefix='/api')


def _get_community_or_404(community_id):
    community = db.session.get(Community, community_id)
    if community is None:
        raise NotFound('Community not found')
    return community


def _get_course_or_404(course_id):
    course = db.session.get(Course, course_id)
    if course is None:
        raise NotFound('Course not found')
    # Drafts are only visible to the community owner.
    if course.status != CourseStatusEnum.PUBLISHED and not is_owner(course, current_user):
        raise NotFound('Course not found')
    return course


def _unlocked_ids():
    return parse_id_list(request.args.getlist('unlocked'))


@courses_bp.route('/communities/<community_id>/tiers', methods=['GET'])
def community_tiers(community_id):
    """Active subscription tiers of a community, in display order."""
    _get_community_or_404(community_id)
    tiers = tier_registry().active_tiers(community_id)
    return jsonify({'tiers': [tier.to_dict() for tier in tiers]})


@courses_bp.route('/communities/<community_id>/courses', methods=['GET'])
@login_required
def community_courses(community_id):
    """Courses of a community with the current user's access decision for each."""
    community = _get_community_or_404(community_id)

    stmt = select(Course).filter_by(community_id=community_id).order_by(Course.created_at)
    if community.creator_id != current_user.id:
        stmt = stmt.filter_by(status=CourseStatusEnum.PUBLISHED)
    courses = list(db.session.scalars(stmt))

    membership = membership_manager().get_active_membership(current_user.id, community_id)
    catalog = tier_registry().tier_catalog(community_id)
    decisions = accessible_courses(courses, current_user, membership, catalog, _unlocked_ids(), now=utcnow())
    return jsonify({
        'courses': [dict(course.to_dict(), hasAccess=allowed) for course, allowed in decisions],
    })


@courses_bp.route('/communities/<community_id>/features', methods=['GET'])
@login_required
def community_features(community_id):
    """Community-level features the current user's tier unlocks."""
    community = _get_community_or_404(community_id)
    membership = membership_manager().get_active_membership(current_user.id, community_id)
    catalog = tier_registry().tier_catalog(community_id)
    owner = community.creator_id == current_user.id
    return jsonify({
        'privateChat': has_tier_feature(TierFeatureEnum.PRIVATE_CHAT, membership, catalog, owner=owner),
        'groupCalls': has_tier_feature(TierFeatureEnum.GROUP_CALLS, membership, catalog, owner=owner),
        'communityAccess': has_tier_feature(TierFeatureEnum.COMMUNITY_ACCESS, membership, catalog, owner=owner),
    })


@courses_bp.route('/courses/<course_id>/access', methods=['GET'])
@login_required
def course_access(course_id):
    """
    Access decision for one course, plus the tiers that would unlock it and the
    direct checkout link of the first such tier that has one.
    """
    course = _get_course_or_404(course_id)
    registry = tier_registry()
    membership = membership_manager().get_active_membership(current_user.id, course.community_id)
    catalog = registry.tier_catalog(course.community_id)

    allowed = has_access(course, current_user, membership, catalog, _unlocked_ids(), now=utcnow())
    granting_tiers = registry.tiers_granting_course(course)
    return jsonify({
        'courseId': course.id,
        'hasAccess': allowed,
        'grantingTiers': [tier.to_dict() for tier in granting_tiers],
        'checkoutUrl': registry.direct_checkout_url(granting_tiers),
    })


@courses_bp.route('/courses/<course_id>/promo', methods=['POST'])
@login_required
def redeem_promo_code(course_id):
    """
    Checks a promo code for a course.
    Body: {promoCode}. Returns {courseId, unlocked}; a wrong code is not an error.
    """
    course = _get_course_or_404(course_id)
    form = PromoCodeForm()
    if not form.validate():
        raise InvalidState(form_error_message(form))

    unlocked = promo_code_matches(course, form.promo_code.data)
    if unlocked:
        current_app.logger.info(f"User {current_user.id} unlocked course {course.id} with a promo code.")
    else:
        current_app.logger.info(f"User {current_user.id} entered a wrong promo code for course {course.id}.")
    return jsonify({'courseId': course.id, 'unlocked': unlocked})
