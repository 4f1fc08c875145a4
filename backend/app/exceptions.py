"""
FitSense - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the application.

Usage:
    from app.exceptions import NotFoundError, ValidationError

    # In a service
    raise NotFoundError("Member record", record_id)

    # With custom message
    raise ValidationError("Payment amount must be positive", field="amount")
"""
from typing import Any, Dict, Optional


class FitSenseException(Exception):
    """
    Base exception for all FitSense errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "FITSENSE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(FitSenseException):
    """Raised when input validation fails."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


class DuplicateError(FitSenseException):
    """Raised when attempting to create a duplicate resource."""

    error_code = "DUPLICATE_ERROR"
    status_code = 400

    def __init__(
        self,
        resource: str = "Resource",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        message = f"{resource} already exists"
        if field and value:
            message = f"{resource} with {field}='{value}' already exists"
        super().__init__(message, details=details)


# ===================
# 403 Forbidden Errors
# ===================


class PermissionDeniedError(FitSenseException):
    """Raised when user lacks permission for an action."""

    error_code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if action:
            details["action"] = action
        if resource:
            details["resource"] = resource
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(FitSenseException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class ConflictError(FitSenseException):
    """Raised when there's a resource conflict."""

    error_code = "CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class SignedUpMemberDeletionError(ConflictError):
    """Raised when deleting a ledger row that belongs to a registered app user."""

    error_code = "SIGNED_UP_MEMBER"

    def __init__(
        self,
        member_name: str,
        *,
        record_id: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["is_signed_up"] = True
        if record_id is not None:
            details["record_id"] = str(record_id)
        message = (
            f"{member_name} is a registered user. Delete the member account instead "
            "to properly remove their ledger record."
        )
        super().__init__(message, details=details)
