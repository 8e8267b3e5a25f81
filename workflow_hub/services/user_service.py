"""
User Service — registration, credential checks and lookups.

Emails are matched exactly as supplied (case-sensitive, no normalization);
the syntax check uses email-validator but the stored value is the raw input.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError

from workflow_hub.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    ValidationError,
)
from workflow_hub.models import db
from workflow_hub.models.auth import ROLE_USER, USER_ROLES, User
from workflow_hub.utils.crypto import burn_password_check, hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _validate_registration(name, email, password, role) -> dict:
    errors = {}
    if name is not None and not isinstance(name, str):
        errors["name"] = "Name must be a string"
    if not isinstance(email, str) or not email.strip():
        errors["email"] = "Email is required"
    else:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            errors["email"] = f"Invalid email: {e}"
    if not isinstance(password, str) or not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if role not in USER_ROLES:
        errors["role"] = f"Invalid role: '{role}'. Allowed: {list(USER_ROLES)}"
    return errors


# ═══════════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════════
def create_user(name: str | None, email: str, password: str, role: str = ROLE_USER) -> User:
    """Create a user with a bcrypt-hashed password.

    Public registration always passes the default role; other roles are
    only assigned by trusted callers.

    Raises:
        ValidationError: missing/invalid fields.
        ConflictError: the email is already registered.
    """
    errors = _validate_registration(name, email, password, role)
    if errors:
        raise ValidationError("Invalid registration data", details=errors)

    if get_user_by_email(email):
        raise ConflictError("User", "email", email, message="User already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.session.rollback()
        logger.warning("Registration hit unique constraint on email")
        raise ConflictError("User", "email", email, message="User already exists")
    logger.info("User registered id=%s role=%s", user.id, user.role)
    return user


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Return the user for a valid email/password pair.

    Unknown email and wrong password both raise InvalidCredentialsError
    after one bcrypt comparison each.
    """
    user = get_user_by_email(email)
    if user is None:
        burn_password_check(password)
        logger.warning("Login failed: unknown email")
        raise InvalidCredentialsError()

    if not verify_password(password, user.password_hash):
        logger.warning("Login failed: bad password for user id=%s", user.id)
        raise InvalidCredentialsError()

    logger.info("Login succeeded for user id=%s", user.id)
    return user


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════
def get_user_by_email(email: str) -> User | None:
    """Exact-match lookup by email."""
    return User.query.filter_by(email=email).first()
