from models import Course, SubscriptionTier
from services.tiers import TierRegistry


def test_active_tiers_are_scoped_and_sorted(db, community, make_tier):
    make_tier(name='Gold', sort_order=3)
    make_tier(name='Silver', sort_order=2)
    make_tier(name='Old', sort_order=1, is_active=False)

    registry = TierRegistry(db.session)

    assert [tier.name for tier in registry.active_tiers(community.id)] == ['Silver', 'Gold']
    assert registry.active_tiers('other-community') == []
    assert set(registry.tier_catalog(community.id)) == {tier.id for tier in registry.active_tiers(community.id)}


def test_tiers_granting_course(db, community, make_tier, make_course):
    course = make_course(access_types=['paid_subscription'])
    everything = make_tier(name='All', features=['courses_all'])
    selected = make_tier(name='Selected', features=['courses_selected'], selected_course_ids=[course.id])
    make_tier(name='Other selection', features=['courses_selected'], selected_course_ids=['another-course'])
    make_tier(name='Chat only', features=['private_chat'])
    make_tier(name='Retired', features=['courses_all'], is_active=False)

    granting = TierRegistry(db.session).tiers_granting_course(course)

    assert {tier.id for tier in granting} == {everything.id, selected.id}


def test_direct_checkout_url_prefers_first_tier_with_url(db, make_tier):
    plain = make_tier(name='Plain')
    linked = make_tier(name='Linked', payment_url='https://pay.example.com/linked')
    assert TierRegistry.direct_checkout_url([plain, linked]) == 'https://pay.example.com/linked'
    assert TierRegistry.direct_checkout_url([plain]) is None


def test_selected_list_is_authoritative_only_without_all_courses():
    course = Course(id='course-1')
    both = SubscriptionTier(features=['courses_all', 'courses_selected'], selected_course_ids=[], is_active=True)
    selected = SubscriptionTier(features=['courses_selected'], selected_course_ids=[], is_active=True)
    assert both.grants_course(course.id) is True
    assert selected.grants_course(course.id) is False
