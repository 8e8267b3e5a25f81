"""
Auth Blueprint — cookie-based JWT authentication endpoints.

  POST /api/auth/login       — Email + password → access token + cookie
  POST /api/auth/register    — Create a USER account
  POST /api/auth/logout      — Clear the auth cookie
  GET  /api/auth/me          — Identity decoded from the token
"""

from flask import Blueprint, jsonify, request

from workflow_hub.auth import current_identity, require_auth
from workflow_hub.core.exceptions import ValidationError
from workflow_hub.services.jwt_service import (
    clear_auth_cookie,
    generate_access_token,
    get_access_expires,
    set_auth_cookie,
)
from workflow_hub.services.user_service import authenticate_user, create_user
from workflow_hub.utils.errors import register_api_error_handlers

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
register_api_error_handlers(auth_bp)


def _json_object() -> dict:
    """Request body as a dict; a missing body counts as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "Expected an object"})
    return data


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    Returns: { "accessToken": "...", "user": {...} } and sets the auth cookie.
    """
    data = _json_object()
    email = data.get("email")
    password = data.get("password")

    errors = {}
    if not isinstance(email, str) or not email:
        errors["email"] = "Email is required"
    if not isinstance(password, str) or not password:
        errors["password"] = "Password is required"
    if errors:
        raise ValidationError("Email and password are required", details=errors)

    user = authenticate_user(email, password)
    lifetime = get_access_expires()
    token = generate_access_token(user.identity(), expires_in=lifetime)

    response = jsonify({"accessToken": token, "user": user.to_dict()})
    set_auth_cookie(response, token, max_age=lifetime)
    return response, 200


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create a new account with the USER role.

    Body: { "name": "...", "email": "...", "password": "..." }
    """
    data = _json_object()
    user = create_user(data.get("name"), data.get("email"), data.get("password"))
    return jsonify(user.to_dict()), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Clear the auth cookie. The token is not revoked server-side."""
    response = jsonify({"success": True, "message": "Logged out successfully"})
    return clear_auth_cookie(response), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """Return the identity carried by the current token."""
    return jsonify(current_identity()), 200
