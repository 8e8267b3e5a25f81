"""
Shared pytest fixtures for the Workflow Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin_user / manager_user / basic_user: one user per role
    - login_as: log a user in through the API (cookie lands in the client jar)
    - make_workflow: create a workflow through the service layer
"""

import pytest

from workflow_hub import create_app
from workflow_hub.models import db as _db
from workflow_hub.models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_USER

TEST_PASSWORD = "SecurePass123!"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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


def _make_user(name, email, role):
    from workflow_hub.services.user_service import create_user
    return create_user(name, email, TEST_PASSWORD, role=role)


@pytest.fixture()
def admin_user():
    return _make_user("Ada Admin", "admin@acme.io", ROLE_ADMIN)


@pytest.fixture()
def manager_user():
    return _make_user("Max Manager", "manager@acme.io", ROLE_MANAGER)


@pytest.fixture()
def basic_user():
    return _make_user("Uma User", "user@acme.io", ROLE_USER)


@pytest.fixture()
def login_as(client):
    """Return a callable that logs ``user`` in and returns the login JSON."""

    def _login(user, password=TEST_PASSWORD):
        res = client.post(
            "/api/auth/login",
            json={"email": user.email, "password": password},
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()

    return _login


# ── Workflows ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_workflow():
    """Return a factory creating a workflow through the service layer."""
    from workflow_hub.services import workflow_service

    def _make(name="Onboarding", phases=None, **extra):
        payload = {"name": name, "phases": phases if phases is not None else [], **extra}
        return workflow_service.create_workflow(payload)

    return _make


@pytest.fixture()
def two_phase_payload():
    """Create payload with two phases and three tasks."""
    return {
        "name": "Customer Onboarding",
        "description": "Standard onboarding",
        "phases": [
            {
                "name": "Discovery",
                "order": 0,
                "tasks": [
                    {"name": "Kickoff call", "priority": "HIGH", "manHours": 2},
                    {
                        "name": "Collect requirements",
                        "description": "Gather scope",
                        "formTemplate": {
                            "fields": [
                                {"type": "text", "label": "Company", "required": True},
                                {"type": "select", "label": "Tier", "options": ["Gold", "Silver"]},
                            ]
                        },
                    },
                ],
            },
            {
                "name": "Delivery",
                "order": 1,
                "tasks": [{"name": "Go live", "priority": "CRITICAL", "manHours": 8.5}],
            },
        ],
    }
