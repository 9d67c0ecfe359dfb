"""Application errors.

Each class carries its HTTP status and machine-readable code, so the error
handler in ``donext.app`` never needs to look at the message text.
"""

from __future__ import annotations


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error", details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required", details=None):
        super().__init__(message, details)


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Insufficient permissions", details=None):
        super().__init__(message, details)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND_ERROR"

    def __init__(self, message: str = "Resource not found", details=None):
        super().__init__(message, details)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"


class InvalidTransitionError(AppError):
    status_code = 409
    code = "INVALID_TRANSITION"


class ExternalServiceError(AppError):
    """Raised when a calendar provider call fails."""

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
