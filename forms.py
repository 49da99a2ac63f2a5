from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Email, EqualTo, Length, Optional, URL, ValidationError # Import standard validators.
from models.user import User # Import User model for email validation.

# All forms here are bound to JSON request bodies (Flask-WTF wraps request.get_json() as form data).
# Field names follow the web client's camelCase keys via `name=`.
# CSRF is off because these endpoints are called by the SPA with a session cookie and JSON bodies, not HTML forms.


class ApiForm(FlaskForm):
    class Meta:
        csrf = False


class RegistrationForm(ApiForm):
    """
    Form for user registration.
    Includes fields for email, password (with optional confirmation), and full name.
    Custom validation is included to check if an email is already registered.
    """
    # Email field: requires data and must be a valid email format.
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    # Password field: requires data and must be at least 6 characters long.
    password = PasswordField('Password', validators=[DataRequired(message="Password is required."), Length(min=6, message="Password must be at least 6 characters long.")])
    # Confirmation is optional for API clients, but must match when sent.
    confirm_password = PasswordField('Confirm Password', name='confirmPassword', validators=[Optional(), EqualTo('password', message="Passwords must match.")])
    full_name = StringField('Full Name', name='fullName', validators=[DataRequired(message="Full name is required."), Length(max=100)])

    def validate_email(self, email):
        """
        Custom validator for the email field.
        Checks if the provided email address already exists in the database.

        Raises:
            ValidationError: If the email is already taken.
        """
        user = User.query.filter_by(email=email.data.strip().lower()).first() # Emails are stored lower-cased.
        if user:
            raise ValidationError('That email address is already registered. Please choose a different one or log in.')


class LoginForm(ApiForm):
    """
    Form for user login.
    Includes fields for email, password, and a "Remember Me" option.
    """
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    # Remember Me field: boolean field for persistent login session.
    remember_me = BooleanField('Remember Me', name='rememberMe')


class CreateSubscriptionForm(ApiForm):
    """
    Body of POST /api/payments/create-subscription.
    `returnUrl` may contain a '{transactionId}' placeholder.
    """
    community_id = StringField('Community', name='communityId', validators=[DataRequired(message="communityId is required.")])
    subscription_tier_id = StringField('Subscription tier', name='subscriptionTierId', validators=[DataRequired(message="subscriptionTierId is required.")])
    return_url = StringField('Return URL', name='returnUrl', validators=[Optional(), URL(require_tld=False, message="returnUrl must be an absolute URL.")])


class PromoCodeForm(ApiForm):
    """Body of POST /api/courses/<id>/promo."""
    promo_code = StringField('Promo code', name='promoCode', validators=[DataRequired(message="promoCode is required."), Length(max=100)])


def form_error_message(form):
    """
    Builds the single error message returned for an invalid API form.

    Missing required fields are reported together ("Missing required fields: a, b");
    otherwise the first validator message is returned.
    """
    missing = [
        field.name for field in form
        if field.flags.required and not field.data
    ]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    for field in form:
        if field.errors:
            return field.errors[0]
    return 'Invalid request'
