from flask import Flask, jsonify, request # The main Flask class and request helpers.
from flask_migrate import Migrate # For handling database migrations with Flask-Migrate.
from config import Config # Import the application's configuration class.
from exceptions import BillingError, Unauthenticated, UpstreamError
from extensions import db, login_manager # Import initialized extensions.
from models import User # Importing the models package registers every table with SQLAlchemy.
from services.yookassa import YooKassaGateway

# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.
    Tests pass their own config class; production uses Config (environment variables).
    """
    app = Flask(__name__)

    # Load configuration from the given config object.
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # --- Initialize Flask Extensions ---
    db.init_app(app)
    # Links the Flask app and SQLAlchemy DB instance to the migration engine (`flask db upgrade`).
    Migrate(app, db)
    login_manager.init_app(app)

    # --- Payment gateway ---
    # One client per app; services look it up here on every request so tests can swap it out.
    app.extensions['yookassa'] = YooKassaGateway.from_config(app.config)
    if not app.extensions['yookassa'].is_configured:
        app.logger.warning("YooKassa credentials are missing; subscription payments will fail until YOOKASSA_SHOP_ID and YOOKASSA_SECRET_KEY are set.")

    # --- Flask-Login ---
    # Reloads the user object from the user ID stored in the session.
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    # API clients get a JSON 401 instead of a redirect to a login page.
    @login_manager.unauthorized_handler
    def unauthorized():
        raise Unauthenticated()

    # --- Error handling ---
    @app.errorhandler(BillingError)
    def handle_billing_error(error):
        if isinstance(error, UpstreamError):
            # The raw gateway body is logged here and never sent to the client.
            app.logger.error(f"{error.message} (upstream status {error.upstream_status}): {error.upstream_body}")
        return jsonify(error.to_dict()), int(error.status_code)

    register_cors(app)

    # --- Import and Register Blueprints ---
    from routes.auth import auth_bp
    from routes.courses import courses_bp
    from routes.main import main_bp
    from routes.payments import payments_bp

    app.register_blueprint(auth_bp)     # /api/auth/...
    app.register_blueprint(payments_bp) # /api/payments/...
    app.register_blueprint(courses_bp)  # /api/communities/... and /api/courses/...
    app.register_blueprint(main_bp)     # /health

    return app # Return the configured Flask app instance.


def register_cors(app):
    """
    Adds CORS headers for the origins listed in CORS_ALLOWED_ORIGINS and answers preflights with 204.
    Requests from other origins get no CORS headers, so browsers block them.
    """
    @app.before_request
    def answer_preflight():
        if request.method == 'OPTIONS':
            return app.response_class(status=204)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get('Origin')
        if origin and origin in app.config.get('CORS_ALLOWED_ORIGINS', []):
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
            response.vary.add('Origin')
        return response


# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app() # Create an app instance using the factory.
    app.run(debug=True)
