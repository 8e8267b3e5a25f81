"""
Server-rendered page flows: login/register/logout forms, dashboard,
workflow list, create/edit forms and the not-found view.
"""

import json
from urllib.parse import parse_qs, urlparse

from workflow_hub.models.auth import User
from workflow_hub.models.workflow import Workflow

TEST_PASSWORD = "SecurePass123!"  # matches the conftest user fixtures


def _form_login(client, user, **extra):
    return client.post(
        "/login",
        data={"email": user.email, "password": TEST_PASSWORD, **extra},
    )


def _auth_cookie(res):
    return [c for c in res.headers.getlist("Set-Cookie") if c.startswith("auth-token=")]


# ═══════════════════════════════════════════════════════════════
# Auth pages
# ═══════════════════════════════════════════════════════════════

class TestAuthPages:
    def test_root_redirects_anonymous_to_login(self, client):
        res = client.get("/")
        assert res.status_code == 302
        assert urlparse(res.headers["Location"]).path == "/login"

    def test_root_redirects_authenticated_to_dashboard(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.get("/")
        assert urlparse(res.headers["Location"]).path == "/dashboard"

    def test_login_form_sets_thirty_day_cookie(self, client, basic_user):
        res = _form_login(client, basic_user)
        assert res.status_code == 302
        assert urlparse(res.headers["Location"]).path == "/dashboard"
        cookie = _auth_cookie(res)
        assert cookie and "Max-Age=2592000" in cookie[0] and "HttpOnly" in cookie[0]

    def test_login_follows_relative_callback(self, client, manager_user):
        res = _form_login(client, manager_user, callbackUrl="/workflows?page=2")
        assert res.headers["Location"].endswith("/workflows?page=2")

    def test_login_ignores_offsite_callback(self, client, basic_user):
        res = _form_login(client, basic_user, callbackUrl="//evil.example/steal")
        assert urlparse(res.headers["Location"]).path == "/dashboard"

    def test_login_bad_credentials_rerenders(self, client, basic_user):
        res = client.post("/login", data={"email": basic_user.email, "password": "nope-nope"})
        assert res.status_code == 401
        assert b"Invalid credentials" in res.data
        assert not _auth_cookie(res)

    def test_login_page_shows_session_expired(self, client):
        res = client.get("/login?error=SessionExpired&callbackUrl=%2Fdashboard")
        assert res.status_code == 200
        assert b'data-error="SessionExpired"' in res.data
        assert b'value="/dashboard"' in res.data

    def test_logged_in_user_skips_login_page(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.get("/login")
        assert res.status_code == 302
        assert urlparse(res.headers["Location"]).path == "/dashboard"

    def test_register_then_login(self, client):
        res = client.post(
            "/register",
            data={"name": "Page User", "email": "page@acme.io", "password": "password123"},
        )
        assert res.status_code == 302
        location = urlparse(res.headers["Location"])
        assert location.path == "/login"
        assert parse_qs(location.query)["registered"] == ["1"]
        assert User.query.filter_by(email="page@acme.io").one().role == "USER"

    def test_register_duplicate_rerenders(self, client, basic_user):
        res = client.post(
            "/register",
            data={"email": basic_user.email, "password": "password123"},
        )
        assert res.status_code == 400
        assert b"User already exists" in res.data

    def test_logout_clears_cookie(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.post("/logout")
        assert res.status_code == 302
        assert "Max-Age=0" in _auth_cookie(res)[0]
        assert client.get("/dashboard").status_code == 302


# ═══════════════════════════════════════════════════════════════
# Dashboard & workflow pages
# ═══════════════════════════════════════════════════════════════

class TestWorkflowPages:
    def test_dashboard_shows_access_denied(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.get("/dashboard?error=AccessDenied")
        assert res.status_code == 200
        assert b'data-error="AccessDenied"' in res.data

    def test_list_page(self, client, login_as, manager_user, make_workflow):
        make_workflow("Procurement")
        make_workflow("Payroll")
        login_as(manager_user)

        res = client.get("/workflows?search=proc")

        assert res.status_code == 200
        assert b"Procurement" in res.data
        assert b"Payroll" not in res.data

    def test_create_through_form(self, client, login_as, manager_user):
        login_as(manager_user)
        phases = [{"name": "Plan", "order": 0, "tasks": [{"name": "Scope", "priority": "HIGH"}]}]

        res = client.post(
            "/workflows/new",
            data={"name": "Form flow", "description": "", "phases": json.dumps(phases)},
        )

        assert res.status_code == 302
        wf = Workflow.query.filter_by(name="Form flow").one()
        assert urlparse(res.headers["Location"]).path == f"/workflows/{wf.id}"
        assert wf.phases[0].tasks[0].priority == "HIGH"
        assert wf.created_by_id == manager_user.id

    def test_create_form_bad_json(self, client, login_as, manager_user):
        login_as(manager_user)
        res = client.post("/workflows/new", data={"name": "Broken", "phases": "[{"})
        assert res.status_code == 400
        assert b"Phases must be valid JSON" in res.data
        assert Workflow.query.count() == 0

    def test_create_form_validation_errors(self, client, login_as, manager_user):
        login_as(manager_user)
        res = client.post(
            "/workflows/new",
            data={"name": "", "phases": json.dumps([{"name": "P", "order": "first"}])},
        )
        assert res.status_code == 400
        assert b"phases.0.order" in res.data

    def test_detail_and_edit(self, client, login_as, manager_user, make_workflow, two_phase_payload):
        wf = make_workflow(**two_phase_payload)
        wf_id = wf.id
        login_as(manager_user)

        detail = client.get(f"/workflows/{wf_id}")
        assert detail.status_code == 200
        assert b"Collect requirements" in detail.data

        edit_form = client.get(f"/workflows/{wf_id}/edit")
        assert edit_form.status_code == 200
        assert wf.phases[0].id.encode() in edit_form.data

        keep = wf.phases[0]
        phases = [{"id": keep.id, "name": "Discovery", "order": 0, "tasks": [{"name": "Only task"}]}]
        res = client.post(
            f"/workflows/{wf_id}/edit",
            data={"name": "Edited", "description": "d", "phases": json.dumps(phases)},
        )
        assert res.status_code == 302

        after = client.get(f"/api/workflows/{wf_id}").get_json()
        assert after["name"] == "Edited"
        assert [p["name"] for p in after["phases"]] == ["Discovery"]
        assert [t["name"] for t in after["phases"][0]["tasks"]] == ["Only task"]

    def test_missing_workflow_page_is_404(self, client, login_as, manager_user):
        login_as(manager_user)
        res = client.get("/workflows/does-not-exist")
        assert res.status_code == 404
        assert b"Workflow not found" in res.data

    def test_user_cannot_open_create_form(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.get("/workflows/new")
        assert res.status_code == 302
        assert parse_qs(urlparse(res.headers["Location"]).query)["error"] == ["AccessDenied"]
