"""
Application-wide exception hierarchy.

Services raise these; blueprints translate them to JSON envelopes through
the handlers registered in ``create_app`` so status codes stay consistent.

Usage:
    from qaportal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("code is required", details={"code": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist (HTTP 404).

    Args:
        resource: Human-readable entity name (e.g. "Project", "TestCase").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule (HTTP 400).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value (HTTP 409)."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class ImportAbortedError(Exception):
    """Raised when a bulk import cannot start (e.g. reference lookups failed).

    No row has been processed when this is raised. Maps to HTTP 503.
    """
