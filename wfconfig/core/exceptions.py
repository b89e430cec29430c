"""
Platform-wide exception hierarchy.

Services and the editing engine raise these types; blueprints register
handlers against them once and get consistent HTTP status codes.

Usage:
    from wfconfig.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="WorkflowInstance", resource_id="CFG-1")
    raise ValidationError("No available substages for this stage", details={"stage_id": 3})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Args:
        resource: Human-readable model/entity name (e.g. "WorkflowStage").
        resource_id: The key that was looked up. Included in logs and message.
        app_id: Optional — the application scope that was enforced.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        app_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.app_id = app_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if app_id is not None:
            msg += f" (app={app_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Engine edits that would break a configuration invariant raise this
    before touching the record store, so a rejected edit is always a no-op.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed (shown to the operator).
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field (or field pair) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class BackendError(Exception):
    """Raised when the configuration backend cannot be reached or fails.

    Distinct from ValidationError: the request may have been fine, the
    transport or the remote side was not.

    Args:
        message: Human-readable summary.
        status_code: HTTP status from the remote side, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
