from datetime import timedelta

from models import CourseStatusEnum
from utils.helpers import utcnow


def test_tiers_are_listed_in_display_order(client, db, community, make_tier):
    make_tier(name='Premium', sort_order=2)
    make_tier(name='Basic', sort_order=1)
    make_tier(name='Retired', is_active=False)

    response = client.get(f'/api/communities/{community.id}/tiers')

    assert response.status_code == 200
    assert [tier['name'] for tier in response.get_json()['tiers']] == ['Basic', 'Premium']


def test_tiers_for_unknown_community_is_404(client, db):
    assert client.get('/api/communities/missing/tiers').status_code == 404


def test_course_list_carries_access_decisions(client, db, login, member, community, make_course):
    make_course(title='Welcome', access_types=['open'])
    make_course(title='Veterans', access_types=['by_rating_level'], required_rating=100)
    make_course(title='Hidden draft', status=CourseStatusEnum.DRAFT)
    login(member)

    response = client.get(f'/api/communities/{community.id}/courses')

    assert response.status_code == 200
    decisions = {course['title']: course['hasAccess'] for course in response.get_json()['courses']}
    assert decisions == {'Welcome': True, 'Veterans': False}


def test_owner_sees_drafts_with_access(client, db, login, owner, community, make_course):
    make_course(title='Hidden draft', status=CourseStatusEnum.DRAFT, access_types=['paid_subscription'])
    login(owner)

    courses = client.get(f'/api/communities/{community.id}/courses').get_json()['courses']

    assert [(course['title'], course['hasAccess']) for course in courses] == [('Hidden draft', True)]


def test_course_access_with_paid_membership(client, db, login, member, make_tier, make_course, make_membership):
    tier = make_tier(features=['courses_selected'], payment_url='https://pay.example.com/pro')
    course = make_course(access_types=['paid_subscription'])
    tier.selected_course_ids = [course.id]
    db.session.commit()
    login(member)

    denied = client.get(f'/api/courses/{course.id}/access').get_json()
    assert denied['hasAccess'] is False
    assert [t['id'] for t in denied['grantingTiers']] == [tier.id]
    assert denied['checkoutUrl'] == 'https://pay.example.com/pro'

    now = utcnow()
    make_membership(member, tier, started_at=now, expires_at=now + timedelta(days=30))
    granted = client.get(f'/api/courses/{course.id}/access').get_json()
    assert granted['hasAccess'] is True


def test_promo_code_flow(client, db, login, member, make_course):
    course = make_course(access_types=['promo_code'], promo_code='SPRING24')
    sibling = make_course(title='Sibling', access_types=['promo_code'], promo_code='SPRING24')
    login(member)

    wrong = client.post(f'/api/courses/{course.id}/promo', json={'promoCode': 'winter'})
    assert wrong.get_json() == {'courseId': course.id, 'unlocked': False}

    right = client.post(f'/api/courses/{course.id}/promo', json={'promoCode': '  spring24 '})
    assert right.get_json() == {'courseId': course.id, 'unlocked': True}

    unlocked = client.get(f'/api/courses/{course.id}/access?unlocked={course.id}').get_json()
    assert unlocked['hasAccess'] is True
    sibling_access = client.get(f'/api/courses/{sibling.id}/access?unlocked={course.id}').get_json()
    assert sibling_access['hasAccess'] is False


def test_promo_code_is_required(client, db, login, member, make_course):
    course = make_course(access_types=['promo_code'], promo_code='X')
    login(member)
    response = client.post(f'/api/courses/{course.id}/promo', json={})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Missing required fields: promoCode'}


def test_unknown_course_is_404(client, db, login, member):
    login(member)
    assert client.get('/api/courses/missing/access').status_code == 404


def test_features_follow_the_tier(client, db, login, member, owner, community, make_tier, make_membership):
    tier = make_tier(features=['community_access', 'group_calls'])
    now = utcnow()
    make_membership(member, tier, started_at=now, expires_at=now + timedelta(days=5))
    login(member)

    features = client.get(f'/api/communities/{community.id}/features').get_json()

    assert features == {'privateChat': False, 'groupCalls': True, 'communityAccess': True}
