"""
JWT Service — access token generation, verification and the auth cookie.

Access token:   1 day  (JWT_ACCESS_EXPIRES) for API login
Session token:  30 days (SESSION_MAX_AGE) for the login page
Algorithm:      HS256

Token payload:
{
    "sub": <user_id>,
    "id": <user_id>,
    "email": "...",
    "name": "...",
    "role": "ADMIN" | "MANAGER" | "USER",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

There is no server-side session store: logout only clears the cookie and a
token stays valid until ``exp``.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 86400      # 1 day
DEFAULT_SESSION_MAX_AGE = 2592000   # 30 days
DEFAULT_COOKIE_NAME = "auth-token"
ALGORITHM = "HS256"

IDENTITY_CLAIMS = ("id", "email", "name", "role")


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def get_access_expires() -> int:
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def get_session_max_age() -> int:
    return current_app.config.get("SESSION_MAX_AGE", DEFAULT_SESSION_MAX_AGE)


def get_cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", DEFAULT_COOKIE_NAME)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(
    identity: dict,
    expires_in: int | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Sign an access token embedding ``identity`` (id, email, name, role)."""
    now = issued_at or datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else get_access_expires()
    payload = {claim: identity.get(claim) for claim in IDENTITY_CLAIMS}
    payload.update({
        "sub": str(identity["id"]),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "jti": str(uuid.uuid4()),
    })
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload


def identity_from_payload(payload: dict) -> dict:
    """Project the identity claims out of a decoded payload."""
    return {claim: payload.get(claim) for claim in IDENTITY_CLAIMS}


# ═══════════════════════════════════════════════════════════════
# Cookie helpers
# ═══════════════════════════════════════════════════════════════
def set_auth_cookie(response, token: str, max_age: int):
    """Attach the token as an HTTP-only, SameSite=Lax cookie."""
    response.set_cookie(
        get_cookie_name(),
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=bool(current_app.config.get("SESSION_COOKIE_SECURE", False)),
        samesite="Lax",
    )
    return response


def clear_auth_cookie(response):
    """Delete the auth cookie. The token itself is not revoked."""
    response.delete_cookie(
        get_cookie_name(),
        path="/",
        httponly=True,
        secure=bool(current_app.config.get("SESSION_COOKIE_SECURE", False)),
        samesite="Lax",
    )
    return response
