"""
Auth Models — users and roles.

Roles are a fixed, ordered set (ADMIN > MANAGER > USER) stored as a string
column on the user row; see ``workflow_hub.auth.ROLE_HIERARCHY`` for the
capability expansion.
"""

import uuid
from datetime import datetime, timezone

from workflow_hub.models import db

ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "MANAGER"
ROLE_USER = "USER"

USER_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_USER)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200))
    email = db.Column(db.String(200), unique=True, nullable=False)  # stored as supplied, no case folding
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(
        db.String(20),
        nullable=False,
        default=ROLE_USER,
        comment="ADMIN | MANAGER | USER",
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    workflows = db.relationship("Workflow", back_populates="created_by", lazy="dynamic")

    def to_dict(self):
        """Public representation — never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def identity(self):
        """Claims embedded in access tokens."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
