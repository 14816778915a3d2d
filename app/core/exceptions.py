"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception.

    ``details`` carries structured context (ids, current status) returned to
    the client next to the message.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Appointment, order or doctor does not exist (404)."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class BadRequestException(AppException):
    """Request is well-formed but not acceptable, e.g. cross-patient binding (400)."""

    status_code = 400

    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class ConflictException(AppException):
    """Current state forbids the operation, e.g. a completed order (409)."""

    status_code = 409

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class ValidationException(AppException):
    """Business-rule validation failed, e.g. a blank reversal reason (422)."""

    status_code = 422

    def __init__(self, message: str = "Validation error", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)
