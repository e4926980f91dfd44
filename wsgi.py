# WSGI entry point for the StudyTrack Flask application.
# Used by WSGI servers (e.g., Gunicorn, uWSGI) to run the app in production.

from studytrack import create_app  # Import the application factory function

# Specify the configuration to use for the Flask app.
config = "studytrack.config.ProdConfig"

# The 'application' variable is recognized by most WSGI servers as the entry point.
application = create_app(config)
