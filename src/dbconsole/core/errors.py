"""Error handling module for dbconsole.

This module defines error codes, exception classes, and the error body
returned by the control plane.

Error Response Format (control plane):
{
    "error": {
        "code": "INSTANCE_NOT_FOUND",
        "message": "Instance not found"
    }
}

Usage:
    from dbconsole.core.errors import FetchError, InstanceNotFoundError

    # Raise with default message
    raise InstanceNotFoundError()

    # Raise with custom message
    raise FetchError("Control plane unreachable")

Propagation:
    Errors are raised inside the store and client, and caught at the
    component boundary (coordinator, wizard, log viewer, user manager)
    where they become Outcome values plus notifications.
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    FETCH_FAILED = "FETCH_FAILED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ACTION_IN_PROGRESS = "ACTION_IN_PROGRESS"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INSTANCE_NOT_FOUND = "INSTANCE_NOT_FOUND"
    STATE_CONFLICT = "STATE_CONFLICT"
    REQUEST_REJECTED = "REQUEST_REJECTED"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str = ""
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class ConsoleError(Exception):
    """Base exception for dbconsole.

    All dbconsole specific exceptions inherit from this class so that
    component boundaries can catch them in one place.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code reported by (or equivalent to) the failure
        remote_message: Message taken from the control plane error body, if any
    """

    remote_message: str | None = None

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class FetchError(ConsoleError):
    """503 - Network failure, timeout or 5xx from the control plane.

    Recoverable: the user retries through a manual refresh.
    """

    def __init__(self, message: str = "Control plane request failed") -> None:
        super().__init__(ErrorCode.FETCH_FAILED, message, 503)


class InvalidTransitionError(ConsoleError):
    """409 - Lifecycle action not legal from the instance's current status."""

    def __init__(self, message: str = "Action not allowed in current state") -> None:
        super().__init__(ErrorCode.INVALID_TRANSITION, message, 409)


class ActionInProgressError(ConsoleError):
    """409 - Another action is already in flight for the instance.

    Expected race (double-click), not a true failure.
    """

    def __init__(self, message: str = "Another action is already in progress") -> None:
        super().__init__(ErrorCode.ACTION_IN_PROGRESS, message, 409)


class ValidationError(ConsoleError):
    """422 - One or more fields failed validation.

    Attributes:
        errors: Mapping of field name to the first failing rule's message.
    """

    def __init__(
        self, errors: dict[str, str], message: str = "Validation failed"
    ) -> None:
        self.errors = dict(errors)
        super().__init__(ErrorCode.VALIDATION_FAILED, message, 422)


class InstanceNotFoundError(ConsoleError):
    """404 - Instance not found (treated as terminated)."""

    def __init__(self, message: str = "Instance not found") -> None:
        super().__init__(ErrorCode.INSTANCE_NOT_FOUND, message, 404)


class StateConflictError(ConsoleError):
    """409 - Control plane reports the instance is not in the expected state."""

    def __init__(self, message: str = "Instance state conflict") -> None:
        super().__init__(ErrorCode.STATE_CONFLICT, message, 409)


class RemoteRequestError(ConsoleError):
    """4xx - Control plane rejected the request with a message."""

    def __init__(self, message: str = "Request rejected", status_code: int = 400) -> None:
        super().__init__(ErrorCode.REQUEST_REJECTED, message, status_code)
