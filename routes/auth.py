from flask import Blueprint, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError

from exceptions import InvalidState, Unauthenticated
from extensions import db
from forms import LoginForm, RegistrationForm, form_error_message
from models.user import User

# Blueprint for session authentication of the web client.
# All endpoints speak JSON; the session cookie set by Flask-Login authenticates later API calls.
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Creates a user account and logs it in.
    Body: {email, password, fullName, confirmPassword?}.
    """
    form = RegistrationForm()
    if not form.validate():
        raise InvalidState(form_error_message(form))

    new_user = User(email=form.email.data.strip().lower(), full_name=form.full_name.data.strip())
    new_user.set_password(form.password.data) # Hash the password for secure storage.

    try:
        db.session.add(new_user)
        db.session.commit()
    except IntegrityError: # Lost a race with another registration for the same email.
        db.session.rollback()
        current_app.logger.warning(f"Registration failed for email {new_user.email}: email already exists (IntegrityError).")
        raise InvalidState('That email address is already registered. Please choose a different one or log in.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error during registration for {new_user.email}: {e}", exc_info=True)
        raise

    login_user(new_user)
    current_app.logger.info(f"New user registered: {new_user.email}")
    return jsonify({'user': new_user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Logs a user in with email and password.
    Body: {email, password, rememberMe?}.
    """
    form = LoginForm()
    if not form.validate():
        raise InvalidState(form_error_message(form))

    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login attempt for {form.email.data}.")
        raise Unauthenticated('Invalid email or password')

    login_user(user, remember=form.remember_me.data)
    current_app.logger.info(f"User {user.id} logged in.")
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    current_app.logger.info(f"User {current_user.id} logged out.")
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})
