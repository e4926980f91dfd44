# Import Flask extensions for database, password hashing, and migrations
from flask_sqlalchemy import SQLAlchemy      # ORM for database models and queries
from flask_bcrypt import Bcrypt              # Secure password hashing
from flask_migrate import Migrate            # Database schema migrations

# Instantiate the extensions (to be initialized with the Flask app in the factory)
db = SQLAlchemy()    # Holds profiles, schedules, friends and exams
bcrypt = Bcrypt()    # Hashes account passwords
migrate = Migrate()  # Manages database migrations (schema changes)
