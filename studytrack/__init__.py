from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
import resend

from .routes import register_blueprints
from .extensions import db, bcrypt, migrate
from .errors import StudyTrackError
from .consts import ACTIVE
from .models import User, StudySession
from .schedule import refresh_schedule
from .utils import make_csrf_token, local_now

load_dotenv()


def create_app(config_class="studytrack.config.ProdConfig"):
    """
    Application factory function for creating and configuring the Flask app.
    This pattern allows flexible configuration and easier testing.
    """
    # Create the Flask application instance
    app = Flask(__name__)
    # Load configuration from the given config class
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize Flask extensions with the app
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)

    # Configure Resend API key for email sending, if set
    resend_key = app.config.get("RESEND_API_KEY")
    if resend_key:
        resend.api_key = resend_key

    # Register a CSRF token generator to run before each request
    app.before_request(make_csrf_token)

    # Domain errors carry their own status code
    @app.errorhandler(StudyTrackError)
    def studytrack_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({"message": error.description}), error.code

    # Custom error handler for 500 Internal Server Error
    @app.errorhandler(500)
    def internal_error(error):
        # Roll back the database session to avoid invalid states
        db.session.rollback()
        return jsonify({"message": "Internal server error"}), 500

    # Register all application blueprints (routes)
    register_blueprints(app)

    @app.cli.command("sweep-sessions")
    def sweep_sessions():
        """Transfer ended active sessions for every user."""
        now = local_now()
        users = User.query.join(StudySession).filter(StudySession.status == ACTIVE).distinct().all()
        for user in users:
            refresh_schedule(user, now)
        app.logger.info("Swept schedules of %d user(s)", len(users))

    # Optionally create all database tables if CREATE_DB is set in config
    if app.config.get("CREATE_DB"):
        with app.app_context():
            db.create_all()

    # For SQLite: ensure foreign key constraints are enforced
    # This PRAGMA must be set for every new connection
    if (app.config.get("SQLALCHEMY_DATABASE_URI") or "").startswith("sqlite"):
        with app.app_context():
            with db.engine.connect() as connection:
                connection.execute(db.text("PRAGMA foreign_keys=ON"))

    # Return the configured Flask app instance
    return app
