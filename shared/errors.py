"""
Shared error handling for the tenant access service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AccessLayerException(Exception):
    """Base exception for the access service."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Validation-related errors."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ProfileStoreError(AccessLayerException):
    """The profile store could not serve a read or a write."""

    status_code = 502

    def __init__(self, message: str = "Profile store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PROFILE_STORE_ERROR", message, details)


class ProfileNotFoundError(AccessLayerException):
    """No profile exists for the requested id or email."""

    status_code = 404

    def __init__(self, message: str = "Profile not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("PROFILE_NOT_FOUND", message, details)


class DepartmentLockError(AccessLayerException):
    """Persisting a department lock failed; the lock was not taken."""

    status_code = 502

    def __init__(self, message: str = "Department lock was not persisted", details: Optional[Dict[str, Any]] = None):
        super().__init__("DEPARTMENT_LOCK_FAILED", message, details)


class WelcomeGateError(AccessLayerException):
    """Persisting the welcome acceptance failed; the gate stays open."""

    status_code = 502

    def __init__(self, message: str = "Welcome acceptance was not persisted", details: Optional[Dict[str, Any]] = None):
        super().__init__("WELCOME_ACCEPT_FAILED", message, details)
