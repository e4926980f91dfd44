import os
from dotenv import load_dotenv

load_dotenv()


def _database_url(default=None):
    url = os.getenv("DATABASE_URL") or default
    # Heroku/old url fix
    if url and url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = _database_url()
    RESEND_API_KEY = os.getenv("RESEND_API_PASSWORD")
    # Identity that is always treated as the head administrator
    ADMIN_UID = os.getenv("ADMIN_UID", "")
    # Origin used when building share links
    SHARE_BASE_URL = os.getenv("SHARE_BASE_URL", "http://localhost:5000")
    TIME_ZONE = os.getenv("TIME_ZONE", "Africa/Cairo")
    # Optional TTF font for PDF exports (needed for non-latin lesson names)
    PDF_FONT_PATH = os.getenv("PDF_FONT_PATH")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # Keep CREATE_DB False in production
    CREATE_DB = False


class ProdConfig(BaseConfig):
    SQLALCHEMY_DATABASE_URI = _database_url()


class DevConfig(BaseConfig):
    DEBUG = True
    CREATE_DB = True
    LOG_LEVEL = "DEBUG"
    SQLALCHEMY_DATABASE_URI = _database_url("sqlite:///dev.db")


class TestConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-secret-key-for-sessions"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CREATE_DB = True
    ADMIN_UID = "admin-uid-0000000000000000000"
    SHARE_BASE_URL = "http://studytrack.test"
    RESEND_API_KEY = None
    PDF_FONT_PATH = None
