import pytest
from forms import CreateSubscriptionForm, LoginForm, PromoCodeForm, RegistrationForm, form_error_message
from models.user import User # For testing unique email validation

# Forms built with keyword data only need an app context; JSON binding tests use a request context.

def test_registration_form_valid_data(app_context, db):
    """Test RegistrationForm with all valid data."""
    form = RegistrationForm(full_name="Test User", email="newuser@example.com", password="password123")
    assert form.validate() == True
    assert not form.errors

def test_registration_form_invalid_email_format(app_context, db):
    form = RegistrationForm(full_name="Test User", email="invalid-email", password="password123")
    assert form.validate() == False
    assert "Invalid email address." in form.errors["email"]

def test_registration_form_password_too_short(app_context, db):
    form = RegistrationForm(full_name="Test User", email="test@example.com", password="123")
    assert form.validate() == False
    assert "Password must be at least 6 characters long." in form.errors["password"]

def test_registration_form_passwords_do_not_match(app, db):
    body = {'fullName': 'Test User', 'email': 'test@example.com',
            'password': 'password123', 'confirmPassword': 'password456'}
    with app.test_request_context('/api/auth/register', method='POST', json=body):
        form = RegistrationForm()
        assert form.validate() == False
        assert "Passwords must match." in form.errors["confirm_password"]

def test_registration_form_matching_confirmation(app, db):
    body = {'fullName': 'Match User', 'email': 'match@example.com',
            'password': 'password123', 'confirmPassword': 'password123'}
    with app.test_request_context('/api/auth/register', method='POST', json=body):
        form = RegistrationForm()
        assert form.validate() == True

def test_registration_form_email_already_exists(app_context, db):
    """Test RegistrationForm for an email that already exists in the database (case-insensitive)."""
    existing_user = User(email="exists@example.com", full_name="Existing User")
    existing_user.set_password("password")
    db.session.add(existing_user)
    db.session.commit()

    form = RegistrationForm(full_name="New User", email="Exists@Example.com", password="password123")
    assert form.validate() == False
    assert "That email address is already registered. Please choose a different one or log in." in form.errors["email"]

def test_login_form_valid_data(app_context):
    form = LoginForm(email="user@example.com", password="password123", remember_me=True)
    assert form.validate() == True

def test_login_form_missing_password(app_context):
    form = LoginForm(email="user@example.com")
    assert form.validate() == False
    assert "Password is required." in form.errors["password"]

def test_create_subscription_form_binds_camel_case_json(app):
    body = {'communityId': 'comm-1', 'subscriptionTierId': 'tier-1', 'returnUrl': 'http://localhost:5173/done?tx={transactionId}'}
    with app.test_request_context('/api/payments/create-subscription', method='POST', json=body):
        form = CreateSubscriptionForm()
        assert form.validate() == True
        assert form.community_id.data == 'comm-1'
        assert form.subscription_tier_id.data == 'tier-1'
        assert form.return_url.data == 'http://localhost:5173/done?tx={transactionId}'

def test_create_subscription_form_return_url_is_optional(app):
    with app.test_request_context('/', method='POST', json={'communityId': 'c', 'subscriptionTierId': 't'}):
        form = CreateSubscriptionForm()
        assert form.validate() == True
        assert not form.return_url.data

def test_create_subscription_form_rejects_relative_return_url(app):
    body = {'communityId': 'c', 'subscriptionTierId': 't', 'returnUrl': '/done'}
    with app.test_request_context('/', method='POST', json=body):
        form = CreateSubscriptionForm()
        assert form.validate() == False
        assert form_error_message(form) == "returnUrl must be an absolute URL."

@pytest.mark.parametrize('body, message', [
    ({}, 'Missing required fields: communityId, subscriptionTierId'),
    ({'communityId': 'c'}, 'Missing required fields: subscriptionTierId'),
])
def test_form_error_message_lists_missing_fields(app, body, message):
    with app.test_request_context('/', method='POST', json=body):
        form = CreateSubscriptionForm()
        assert form.validate() == False
        assert form_error_message(form) == message

def test_promo_code_form(app):
    with app.test_request_context('/', method='POST', json={'promoCode': ' SPRING '}):
        form = PromoCodeForm()
        assert form.validate() == True
        assert form.promo_code.data == ' SPRING '
