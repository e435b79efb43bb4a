"""Error taxonomy: every failure the API can report.

Services raise these; main.py renders them into the response envelope
with the status code each class carries. Credential and token failures
use deliberately generic wording so responses can't be used to probe
which accounts exist or why a token was rejected.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class. `status_code` maps the failure onto HTTP."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_envelope(self) -> dict[str, Any]:
        return {"success": False, "message": self.message}


class ValidationFailed(AppError):
    """Malformed input, reported field by field."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[list[dict[str, str]]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors=[{"field": field, "message": message}])

    def to_envelope(self) -> dict[str, Any]:
        envelope = super().to_envelope()
        if self.errors:
            envelope["errors"] = self.errors
        return envelope


class DuplicateIdentity(AppError):
    status_code = 400
    default_message = "User with this email or phone already exists"


class InvalidCredentials(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class InvalidToken(AppError):
    """Expired, malformed, or rotated-out token. No distinction is surfaced."""

    status_code = 401
    default_message = "Invalid refresh token"


class Unauthenticated(AppError):
    """Missing or invalid access token. Always checked before Forbidden."""

    status_code = 401
    default_message = "Not authorized, token failed"


class Forbidden(AppError):
    status_code = 403
    default_message = "Not authorized to access this route"


class NotFound(AppError):
    status_code = 404
    default_message = "User not found"


class InternalFailure(AppError):
    status_code = 500
    default_message = "Server error"
