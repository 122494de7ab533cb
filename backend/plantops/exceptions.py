"""
PlantOps ERP - Custom Exception Hierarchy

Structured, typed exceptions with error codes. Services raise these;
the handlers registered in plantops.main turn them into JSON responses.

Usage:
    from plantops.exceptions import NotFoundError, QCGateError

    raise NotFoundError("WorkOrder", wo_id)
    raise QCGateError("Material QC not approved", gate="material", status="pending")
"""
from typing import Any, Dict, Optional


class PlantOpsException(Exception):
    """
    Base exception for all PlantOps errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "PLANTOPS_ERROR"
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


class ValidationError(PlantOpsException):
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


class InvalidStateError(PlantOpsException):
    """Raised when an operation is invalid for the record's current status."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


class PeriodLockedError(PlantOpsException):
    """Raised when a financial document falls inside a locked month."""

    error_code = "PERIOD_LOCKED"
    status_code = 400

    def __init__(
        self,
        year: int,
        month: int,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["period"] = f"{year:04d}-{month:02d}"
        super().__init__(
            f"Finance period {year:04d}-{month:02d} is locked",
            details=details,
        )


# ===================
# 401 Unauthorized Errors
# ===================


class AuthenticationError(PlantOpsException):
    """Raised when authentication fails."""

    error_code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(
        self,
        message: str = "Authentication required",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class InvalidCredentialsError(AuthenticationError):
    error_code = "INVALID_CREDENTIALS"

    def __init__(
        self,
        message: str = "Invalid email or password",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class TokenExpiredError(AuthenticationError):
    error_code = "TOKEN_EXPIRED"

    def __init__(
        self,
        message: str = "Token has expired",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class InvalidTokenError(AuthenticationError):
    error_code = "INVALID_TOKEN"

    def __init__(
        self,
        message: str = "Invalid token",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# ===================
# 403 Forbidden Errors
# ===================


class PermissionDeniedError(PlantOpsException):
    """Raised when the user's role does not grant an action."""

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


class NotFoundError(PlantOpsException):
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


class ConflictError(PlantOpsException):
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


class DuplicateError(ConflictError):
    """Raised when attempting to create a duplicate resource."""

    error_code = "DUPLICATE_ERROR"

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
# 422 Unprocessable Entity Errors
# ===================


class BusinessRuleError(PlantOpsException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, details=details)


class QCGateError(BusinessRuleError):
    """Raised when a quality gate has not been cleared."""

    error_code = "QC_GATE_BLOCKED"

    def __init__(
        self,
        message: str = "Quality gate not cleared",
        *,
        gate: Optional[str] = None,
        status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if gate:
            details["gate"] = gate
        if status:
            details["status"] = status
        super().__init__(message, rule="qc_gate", details=details)


class DispatchBlockedError(BusinessRuleError):
    """Raised when goods may not leave the plant."""

    error_code = "DISPATCH_BLOCKED"

    def __init__(
        self,
        message: str = "Dispatch blocked",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, rule="dispatch_gate", details=details)


class QuantityExceededError(BusinessRuleError):
    """Raised when a requested quantity exceeds what is available."""

    error_code = "QUANTITY_EXCEEDED"

    def __init__(
        self,
        what: str,
        *,
        requested: Any,
        available: Any,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["requested"] = str(requested)
        details["available"] = str(available)
        message = f"{what}: requested {requested}, available {available}"
        super().__init__(message, rule="quantity_limit", details=details)


class ProductionLockedError(BusinessRuleError):
    """Raised when production is attempted on a QC-locked work order."""

    error_code = "PRODUCTION_LOCKED"

    def __init__(
        self,
        wo_number: str,
        *,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["wo_number"] = wo_number
        if reason:
            details["reason"] = reason
        message = f"Production is locked for {wo_number}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details=details)


# ===================
# 500 Internal Server Errors
# ===================


class DatabaseError(PlantOpsException):
    """Raised when a database operation fails."""

    error_code = "DATABASE_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
