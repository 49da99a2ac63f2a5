from flask_sqlalchemy import SQLAlchemy # ORM for database interactions.
from flask_login import LoginManager    # Manages user sessions for login and logout functionality.

# Initialize SQLAlchemy.
# This instance will be further configured and associated with the Flask app
# in the application factory (create_app function in app.py) using db.init_app(app).
db = SQLAlchemy()

# Initialize Flask-Login's LoginManager.
# This instance handles logging users in and out and remembering their sessions.
# The JSON 401 response for anonymous API calls is registered in create_app.
login_manager = LoginManager()
