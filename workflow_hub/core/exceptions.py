"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once and
get consistent HTTP status codes everywhere (see ``workflow_hub.utils.errors``).

Usage:
    from workflow_hub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Workflow", resource_id=workflow_id)
    raise ValidationError("Invalid workflow payload", details={"name": "Name is required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Workflow").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when a payload fails schema or business-rule validation.

    Maps to HTTP 400.

    Args:
        message: Human-readable summary.
        details: Field-level breakdown. Keys are dotted field paths
                 (``phases.0.tasks.1.name``); values are error messages.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Two flavours share this type:
      - duplicate unique value (``field`` set, e.g. email on registration)
      - dependent records block the operation (``field`` is None)

    Both map to HTTP 400.
    """

    def __init__(
        self,
        resource: str,
        field: str | None = None,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        if message is None:
            message = f"{resource} with {field}={value!r} already exists"
        super().__init__(message)

    @property
    def is_duplicate(self) -> bool:
        return self.field is not None


class InvalidCredentialsError(Exception):
    """Raised on failed login. Carries no hint about which check failed."""

    def __init__(self) -> None:
        super().__init__("Invalid credentials")

