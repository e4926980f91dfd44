from .auth import auth_bp           # Authentication and profile routes
from .schedule import schedule_bp   # Study schedule API routes
from .friends import friends_bp     # Friends list API routes
from .exams import exams_bp         # Exam timetable API routes
from .main import main_bp           # Dashboard (no prefix)


def register_blueprints(app):
    """
    Register all Flask blueprints with their respective URL prefixes.

    Args:
        app (Flask): The Flask application instance.
    """
    app.register_blueprint(auth_bp, url_prefix="/api/auth")           # Auth under /api/auth
    app.register_blueprint(schedule_bp, url_prefix="/api/schedule")   # Schedule under /api/schedule
    app.register_blueprint(friends_bp, url_prefix="/api/friends")     # Friends under /api/friends
    app.register_blueprint(exams_bp, url_prefix="/api/exams")         # Exams under /api/exams
    app.register_blueprint(main_bp)                                   # Dashboard (no prefix)
