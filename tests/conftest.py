import pytest

from studytrack import create_app
from studytrack.extensions import db, bcrypt
from studytrack.models import User

# ----------------------------------------------------
#                  PYTEST FIXTURES
# ----------------------------------------------------

@pytest.fixture(scope='function')
def app():
    """
    Application built from TestConfig with a fresh in-memory database.
    TESTING disables the CSRF check.
    """
    app = create_app("studytrack.config.TestConfig")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def make_user(app):
    """Factory creating users directly in the database."""
    def _make_user(username="testuser", email=None, password="password123",
                   name="Test User", uid=None, role="user"):
        with app.app_context():
            user = User(
                uid=uid or f"uid-{username}",
                email=email or f"{username}@example.com",
                password=bcrypt.generate_password_hash(password).decode('utf-8'),
                name=name,
                username=username,
                role=role,
                created_at="2025-01-01T00:00:00Z",
            )
            db.session.add(user)
            db.session.commit()
            return user.uid
    return _make_user


@pytest.fixture(scope='function')
def auth_client(client, make_user):
    """
    A logged-in client, by writing the uid straight into the session.
    """
    uid = make_user()
    with client.session_transaction() as sess:
        sess['uid'] = uid
    return client


@pytest.fixture(scope='function')
def admin_client(app, make_user):
    """A second client logged in as the configured head administrator."""
    uid = make_user("boss", uid=app.config["ADMIN_UID"])
    admin = app.test_client()
    with admin.session_transaction() as sess:
        sess['uid'] = uid
    return admin
