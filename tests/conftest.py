"""
Shared pytest fixtures for the QA Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - upload_dir: UPLOAD_DIR pointed at a temporary directory
    - admin_user / qa_user: users with the Admin / QA role
    - auth_headers: Bearer headers for admin_user
    - project: Pre-created Project entity
    - user_factory / headers_for: helpers for extra users and their tokens
"""

import pytest

from qaportal import create_app
from qaportal.models import db as _db
from qaportal.services.jwt_service import generate_access_token


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


@pytest.fixture()
def upload_dir(app, tmp_path, monkeypatch):
    """Store artifacts under tmp_path for the duration of the test."""
    monkeypatch.setitem(app.config, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture()
def auth_on(app, monkeypatch):
    """Switch API_AUTH_ENABLED on for one test."""
    monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")


# ── Convenience fixtures ─────────────────────────────────────────────────


def make_user(email, password="Secret123", roles=("QA",), first_name="Test", last_name="User"):
    from qaportal.services.user_service import create_user
    user = create_user(email, password, first_name, last_name, list(roles))
    _db.session.commit()
    return user


def bearer(user):
    return {"Authorization": f"Bearer {generate_access_token(user.id, user.role_names)}"}


@pytest.fixture()
def admin_user():
    return make_user("admin@test.io", roles=("Admin",), first_name="Ada", last_name="Admin")


@pytest.fixture()
def qa_user():
    return make_user("qa@test.io", roles=("QA",), first_name="Quinn", last_name="Tester")


@pytest.fixture()
def auth_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture()
def project(client):
    """Create and return a test Project via the API."""
    res = client.post("/api/v1/projects", json={"code": "PRJ1", "name": "Portal Revamp"})
    assert res.status_code == 201
    return res.get_json()["data"]


@pytest.fixture()
def user_factory():
    """``user_factory(email, roles=(...))`` → committed User."""
    return make_user


@pytest.fixture()
def headers_for():
    """``headers_for(user)`` → Authorization header dict."""
    return bearer
