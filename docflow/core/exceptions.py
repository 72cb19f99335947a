"""
Application-wide exception hierarchy.

Services raise these types; ``docflow.utils.errors.register_error_handlers``
maps each one to the response envelope once, so blueprints never build
error bodies for business failures themselves.

Usage:
    from docflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Flow", resource_id=flow_id)
    raise ValidationError("Invalid node", details={"nodes[0].name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is not visible.

    Used for both missing records and records the caller may not read, so
    a 404 never confirms that a private resource exists.

    Args:
        resource: Entity name (e.g. "Flow", "Document").
        resource_id: The key that was looked up. Logged, not returned.
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
    """Raised when input is well formed JSON but violates field rules.

    Args:
        message: Human-readable summary.
        details: Field-level reasons, ``{field: reason_code}``. Returned to
                 the client as ``error.fields``.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class InvalidStateError(Exception):
    """Raised when a lifecycle rule forbids the operation in the current status.

    Args:
        resource: Model name.
        current: Current status value.
        action: What was attempted (e.g. "edit", "publish").
    """

    def __init__(self, resource: str, current: str, action: str) -> None:
        self.resource = resource
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {resource} in status {current}")


class ForbiddenError(Exception):
    """Raised when the caller can see a resource but may not perform the action."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class UnauthorizedError(Exception):
    """Raised when credentials are missing or wrong."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
