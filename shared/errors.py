"""
Shared error handling for the restaurant access core.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessCoreException(Exception):
    """Base exception for the access core."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthenticationError(AccessCoreException):
    """Authentication-related errors."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class AuthorizationError(AccessCoreException):
    """Authorization-related errors."""

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ValidationError(AccessCoreException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ExternalServiceError(AccessCoreException):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)


class ResolutionUnavailable(ExternalServiceError):
    """Transient store failure during a lookup.

    Raised by store adapters only. Resolvers absorb it into their
    fail-open or fail-closed defaults; it never reaches the UI layer.
    """

    def __init__(self, operation: str, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("identity_store", message, details)
        self.code = "RESOLUTION_UNAVAILABLE"
        self.operation = operation


class PinRejected(AccessCoreException):
    """The identity collaborator rejected a PIN."""

    def __init__(self, failed_attempts: int, remaining_attempts: int):
        super().__init__(
            "PIN_REJECTED",
            "Incorrect PIN",
            {"failed_attempts": failed_attempts, "remaining_attempts": remaining_attempts}
        )
        self.failed_attempts = failed_attempts
        self.remaining_attempts = remaining_attempts


class PinCooldownActive(AccessCoreException):
    """Too many consecutive PIN failures; attempts are refused for a while."""

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            "PIN_COOLDOWN_ACTIVE",
            "Too many incorrect PIN attempts, try again later",
            {"retry_after_seconds": retry_after_seconds}
        )
        self.retry_after_seconds = retry_after_seconds


class PinFormatInvalid(AccessCoreException):
    """PIN rejected locally before contacting the collaborator."""

    def __init__(self, message: str = "PIN must be 1 to 6 digits", details: Optional[Dict[str, Any]] = None):
        super().__init__("PIN_FORMAT_INVALID", message, details)


class IdentityUndetected(AccessCoreException):
    """The network probe found no address within its bound."""

    def __init__(self, message: str = "Unable to detect the local network address", details: Optional[Dict[str, Any]] = None):
        super().__init__("IDENTITY_UNDETECTED", message, details)


class IdentityUnconfirmed(AccessCoreException):
    """The operator declined to confirm the detected network."""

    def __init__(self, message: str = "Network identity was not confirmed", details: Optional[Dict[str, Any]] = None):
        super().__init__("IDENTITY_UNCONFIRMED", message, details)
