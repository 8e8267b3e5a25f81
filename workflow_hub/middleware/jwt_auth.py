"""
JWT Auth Middleware — reads the auth token and sets the caller identity.

Token sources, in order:
  1. ``auth-token`` cookie (browser sessions)
  2. ``Authorization: Bearer <token>`` header (API clients)

Sets on ``flask.g``:
  current_user       — {"id", "email", "name", "role"} or None
  jwt_user_id        — user id or None
  token_issued_at    — datetime (UTC) the token was issued, or None

Invalid or expired tokens are treated as absent; the route guard decides
what an anonymous request may do.
"""

import logging
from datetime import datetime, timezone

import jwt as pyjwt
from flask import g, request

from workflow_hub.services.jwt_service import (
    decode_access_token,
    get_cookie_name,
    identity_from_payload,
)

logger = logging.getLogger(__name__)

# Static assets never carry identity-dependent content
JWT_SKIP_PREFIXES = ("/static/",)


def _token_from_request() -> str | None:
    token = request.cookies.get(get_cookie_name())
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.jwt_user_id = None
        g.token_issued_at = None

        if request.path.startswith(JWT_SKIP_PREFIXES):
            return None

        token = _token_from_request()
        if not token:
            return None

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token on %s", request.path)
            return None
        except pyjwt.InvalidTokenError:
            logger.warning("Invalid token on %s", request.path)
            return None

        identity = identity_from_payload(payload)
        g.current_user = identity
        g.jwt_user_id = identity.get("id")
        iat = payload.get("iat")
        if iat is not None:
            g.token_issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
        return None
