"""
Workflow Hub
Role hierarchy and endpoint-level role checks.

Roles:
    ADMIN > MANAGER > USER

A role satisfies a requirement when the requirement is inside its
capability set, so ``require_role("MANAGER")`` admits ADMIN and MANAGER.

The identity comes from ``g.current_user`` which the JWT middleware
(``workflow_hub.middleware.jwt_auth``) fills from the auth cookie or a
Bearer header.
"""

import functools
import logging
from collections.abc import Iterable

from flask import g, request

from workflow_hub.models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_USER
from workflow_hub.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLE_HIERARCHY = {
    ROLE_ADMIN: frozenset({ROLE_ADMIN, ROLE_MANAGER, ROLE_USER}),
    ROLE_MANAGER: frozenset({ROLE_MANAGER, ROLE_USER}),
    ROLE_USER: frozenset({ROLE_USER}),
}


def expand_role(role: str | None) -> frozenset:
    """Every role whose requirements ``role`` also meets."""
    return ROLE_HIERARCHY.get(role, frozenset())


def role_satisfies(role: str | None, required: Iterable[str]) -> bool:
    """True if ``role`` meets at least one of ``required``.

    An empty requirement only asks for a known role.
    """
    capabilities = expand_role(role)
    if not capabilities:
        return False
    required = set(required)
    if not required:
        return True
    return bool(capabilities & required)


def current_identity() -> dict | None:
    """Identity dict (id, email, name, role) of the caller, or None."""
    return getattr(g, "current_user", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_auth(f):
    """Decorator: reject requests without a valid token (401)."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_identity() is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return f(*args, **kwargs)

    return decorated


def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @workflow_bp.route("/workflows/<workflow_id>", methods=["DELETE"])
        @require_role("ADMIN")
        def delete_workflow(workflow_id): ...

    Runs before the view reads the body, so an under-privileged caller
    gets 403 whatever the payload.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = current_identity()
            if identity is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")

            if not role_satisfies(identity.get("role"), {minimum_role}):
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    identity.get("role"), minimum_role, request.path,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator
