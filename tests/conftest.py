from datetime import datetime
from decimal import Decimal

import pytest
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict
from models import Community, Course, Membership, MembershipStatusEnum, SubscriptionTier, User
from services.yookassa import YooKassaGateway

# Fixed "now" used by tests that inject a clock.
NOW = datetime(2024, 3, 15, 12, 0, 0)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    WTF_CSRF_ENABLED = False # Disable CSRF for form testing convenience
    SECRET_KEY = 'test-secret-key-for-forms' # Flask-Login sessions require a SECRET_KEY
    YOOKASSA_SHOP_ID = 'test-shop'
    YOOKASSA_SECRET_KEY = 'test-secret'
    YOOKASSA_API_URL = 'https://gateway.test/v3'
    # Webhooks are trusted in tests; verification has its own tests with a mocked gateway.
    YOOKASSA_VERIFY_WEBHOOKS = False
    FRONTEND_URL = 'http://localhost:5173'
    CORS_ALLOWED_ORIGINS = ['http://localhost:5173']


@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance


@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Pushes an app context before each test that needs it and pops it afterwards.
    """
    with app.app_context():
        yield


@pytest.fixture(scope='function')
def db(app_context):
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    """
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """
    Test client fixture. Function-scoped so session cookies (logins) never leak between tests.
    """
    return app.test_client()


@pytest.fixture
def mock_gateway(app, mocker):
    """
    Replaces the app's YooKassa client with a mock for the duration of a test.
    create_payment answers like the real gateway does for a new redirect payment.
    """
    gateway = mocker.Mock(spec=YooKassaGateway)
    gateway.create_payment.return_value = {
        'id': 'pay_123',
        'status': 'pending',
        'confirmation': {'type': 'redirect', 'confirmation_url': 'https://yoomoney.test/checkout?orderId=pay_123'},
    }
    gateway.get_payment.return_value = {'id': 'pay_123', 'status': 'succeeded'}
    mocker.patch.dict(app.extensions, {'yookassa': gateway})
    return gateway


@pytest.fixture
def login(client):
    """Logs a user into the test client by writing the Flask-Login session keys."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['_user_id'] = user.id
            sess['_fresh'] = True
        return user
    return _login


# --- Model factories ---

@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make_user(email=None, rating=0, password='password123', full_name='Test User'):
        counter['n'] += 1
        user = User(email=email or f"user{counter['n']}@example.com", full_name=full_name, rating=rating)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def owner(make_user):
    return make_user(email='owner@example.com')


@pytest.fixture
def member(make_user):
    return make_user(email='member@example.com', rating=10)


@pytest.fixture
def community(db, owner):
    community = Community(name='Python Guild', creator_id=owner.id)
    db.session.add(community)
    db.session.commit()
    return community


@pytest.fixture
def make_tier(db, community):
    def _make_tier(name='Pro', price=Decimal('990.00'), features=None, selected_course_ids=None,
                   is_active=True, is_free=False, payment_url=None, sort_order=0, community_id=None):
        tier = SubscriptionTier(
            community_id=community_id or community.id,
            name=name,
            price_monthly=price,
            features=features if features is not None else ['community_access', 'courses_all'],
            selected_course_ids=selected_course_ids,
            is_active=is_active,
            is_free=is_free,
            payment_url=payment_url,
            sort_order=sort_order,
        )
        db.session.add(tier)
        db.session.commit()
        return tier
    return _make_tier


@pytest.fixture
def make_course(db, community):
    def _make_course(title='Intro', **access):
        course = Course(community_id=community.id, title=title, **access)
        db.session.add(course)
        db.session.commit()
        return course
    return _make_course


@pytest.fixture
def make_membership(db, community):
    def _make_membership(user, tier=None, started_at=NOW, expires_at=None, status=MembershipStatusEnum.ACTIVE):
        membership = Membership(
            user_id=user.id,
            community_id=community.id,
            subscription_tier_id=tier.id if tier else None,
            status=status,
            started_at=started_at,
            expires_at=expires_at,
        )
        db.session.add(membership)
        db.session.commit()
        return membership
    return _make_membership
