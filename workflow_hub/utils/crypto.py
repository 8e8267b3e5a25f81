"""
Crypto utilities — bcrypt password hashing.

Cost factor 10. ``verify_password`` also backs the unknown-user path of
login (see ``burn_password_check``) so a missing account and a wrong
password take the same amount of work.
"""

import bcrypt

BCRYPT_ROUNDS = 10

# Hash of a random throwaway secret, computed once at import.
_DUMMY_HASH = bcrypt.hashpw(b"workflow-hub-dummy-secret", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (10 rounds)."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False


def burn_password_check(plain_password: str) -> None:
    """Run a bcrypt comparison whose result is discarded."""
    bcrypt.checkpw(plain_password.encode("utf-8"), _DUMMY_HASH)
