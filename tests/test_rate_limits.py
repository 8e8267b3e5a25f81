"""
Rate limit tests — the credential forms share the auth API budget.

The session ``app`` runs with TESTING=True, where limits are skipped, so
these tests build a second app and attach a fresh Limiter to it.
"""

import pytest
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from workflow_hub import create_app
from workflow_hub.middleware.rate_limiter import AUTH_LIMIT, apply_rate_limits

AUTH_BUDGET = int(AUTH_LIMIT.split("/")[0])


@pytest.fixture()
def limited_client():
    application = create_app("testing")
    application.config["RATELIMIT_ENABLED"] = True
    limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
    limiter.init_app(application)
    apply_rate_limits(application, limiter)
    return application.test_client()


class TestAuthFormLimits:
    def test_form_login_limited_like_api_login(self, limited_client):
        statuses = [
            limited_client.post("/login", data={"email": "ghost@acme.io", "password": "guess-123"}).status_code
            for _ in range(AUTH_BUDGET + 1)
        ]
        assert set(statuses[:AUTH_BUDGET]) == {401}
        assert statuses[-1] == 429

    def test_form_register_limited(self, limited_client):
        statuses = [
            limited_client.post("/register", data={"email": "bad", "password": "x"}).status_code
            for _ in range(AUTH_BUDGET + 1)
        ]
        assert set(statuses[:AUTH_BUDGET]) == {400}
        assert statuses[-1] == 429

    def test_login_page_get_not_limited(self, limited_client):
        for _ in range(AUTH_BUDGET + 1):
            limited_client.post("/login", data={"email": "ghost@acme.io", "password": "guess-123"})
        assert limited_client.get("/login").status_code == 200

    def test_api_login_limited(self, limited_client):
        statuses = [
            limited_client.post("/api/auth/login", json={"email": "ghost@acme.io", "password": "guess-123"}).status_code
            for _ in range(AUTH_BUDGET + 1)
        ]
        assert statuses[-1] == 429


class TestTestingMode:
    def test_limits_skipped_under_testing(self, client):
        statuses = {
            client.post("/login", data={"email": "ghost@acme.io", "password": "guess-123"}).status_code
            for _ in range(AUTH_BUDGET + 5)
        }
        assert statuses == {401}
