"""
Route Guard — application-wide role gate evaluated before every handler.

Architecture:
    A single app.before_request hook (registered after the JWT middleware)
    looks up the longest matching prefix in ROUTE_ROLES and checks the
    caller's role against it with the ADMIN > MANAGER > USER hierarchy.

Outcomes:
    page request                      API request (/api/...)
    ------------                      ----------------------
    no token   → 302 /login?callbackUrl=…        401 ERR_UNAUTHENTICATED
    inactive   → 302 /login?error=SessionExpired 401 ERR_SESSION_EXPIRED
    bad role   → 302 /dashboard?error=AccessDenied 403 ERR_FORBIDDEN

Inactivity is measured from the token's ``iat``: tokens are not refreshed
per request, so issue time stands in for last activity.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from flask import Flask, g, redirect, request

from workflow_hub.auth import role_satisfies
from workflow_hub.models.auth import ROLE_MANAGER, ROLE_USER
from workflow_hub.services.jwt_service import clear_auth_cookie
from workflow_hub.utils.errors import E, api_error

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
DEFAULT_LANDING_PATH = "/dashboard"

# Never gated
PUBLIC_PATHS = frozenset({"/"})
PUBLIC_PREFIXES = (
    "/static/",
    "/api/auth/",
    "/api/health",
    "/login",
    "/register",
    "/forgot-password",
    "/reset-password",
)

# Path prefix → roles allowed (before hierarchy expansion).
# Paths without an entry only require a valid token.
ROUTE_ROLES = {
    "/api/workflows": frozenset({ROLE_USER}),
    "/workflows": frozenset({ROLE_MANAGER}),
    "/dashboard": frozenset({ROLE_USER}),
}

ALLOW = "allow"
LOGIN = "login"
EXPIRED = "expired"
FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class GateDecision:
    outcome: str
    required: frozenset = frozenset()


def _prefix_matches(path: str, prefix: str) -> bool:
    if prefix.endswith("/"):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + "/")


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or any(_prefix_matches(path, p) for p in PUBLIC_PREFIXES)


def required_roles_for(path: str) -> frozenset | None:
    """Roles from the longest ROUTE_ROLES prefix matching ``path``."""
    matches = [prefix for prefix in ROUTE_ROLES if _prefix_matches(path, prefix)]
    if not matches:
        return None
    return ROUTE_ROLES[max(matches, key=len)]


def evaluate(
    path: str,
    identity: dict | None,
    issued_at: datetime | None,
    *,
    now: datetime,
    inactivity_timeout: int,
) -> GateDecision:
    """Pure gate decision for a non-public ``path``."""
    if identity is None:
        return GateDecision(LOGIN)

    if issued_at is not None and now - issued_at > timedelta(seconds=inactivity_timeout):
        return GateDecision(EXPIRED)

    required = required_roles_for(path) or frozenset()
    if not role_satisfies(identity.get("role"), required):
        return GateDecision(FORBIDDEN, required)
    return GateDecision(ALLOW, required)


def _callback_target() -> str:
    qs = request.query_string.decode("utf-8", "replace")
    return f"{request.path}?{qs}" if qs else request.path


def _login_redirect(error: str | None = None):
    params = {}
    if error:
        params["error"] = error
    params["callbackUrl"] = _callback_target()
    return redirect(f"{LOGIN_PATH}?{urlencode(params)}")


def init_route_guard(app: Flask):
    """Register the gate. Call after ``init_jwt_middleware``."""

    @app.before_request
    def _enforce_route_roles():
        path = request.path
        if request.method == "OPTIONS" or is_public(path):
            return None

        identity = getattr(g, "current_user", None)
        decision = evaluate(
            path,
            identity,
            getattr(g, "token_issued_at", None),
            now=datetime.now(timezone.utc),
            inactivity_timeout=app.config.get("SESSION_INACTIVITY_TIMEOUT", 1800),
        )
        if decision.outcome == ALLOW:
            return None

        is_api = path.startswith("/api/")

        if decision.outcome == LOGIN:
            if is_api:
                return api_error(E.UNAUTHENTICATED, "Authentication required")
            return _login_redirect()

        if decision.outcome == EXPIRED:
            logger.info("Session inactive too long user=%s path=%s", identity.get("id"), path)
            if is_api:
                response, status = api_error(E.SESSION_EXPIRED, "Session expired")
                response.status_code = status
            else:
                response = _login_redirect("SessionExpired")
            return clear_auth_cookie(response)

        logger.warning(
            "Route guard denied: role=%s required=%s path=%s",
            identity.get("role"), sorted(decision.required), path,
        )
        if is_api:
            return api_error(E.FORBIDDEN, "Insufficient permissions")
        return redirect(f"{DEFAULT_LANDING_PATH}?{urlencode({'error': 'AccessDenied'})}")

    logger.info("Route guard installed for %d route prefixes", len(ROUTE_ROLES))
