"""
Shared pytest fixtures for the DocFlow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / alice / bob: pre-created users
    - auth_header: factory → {"Authorization": "Bearer ..."} for a user
"""

import pytest

from docflow import create_app
from docflow.core.enums import UserRole
from docflow.models import db as _db
from docflow.models.auth import User
from docflow.services.jwt_service import generate_access_token
from docflow.utils.crypto import hash_password

TEST_PASSWORD = "secret123"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users ────────────────────────────────────────────────────────────────


def _make_user(email, role=UserRole.USER.value, password=TEST_PASSWORD):
    user = User(email=email, password_hash=hash_password(password), role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return _make_user("admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture()
def alice():
    return _make_user("alice@example.com")


@pytest.fixture()
def bob():
    return _make_user("bob@example.com")


@pytest.fixture()
def auth_header():
    """Return a function building a bearer header for a User row."""
    def _header(user):
        token = generate_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _header
