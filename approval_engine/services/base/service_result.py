"""
Service result patterns for standardized response handling.
"""

from typing import TypeVar, Generic, Optional, Any, Dict
from dataclasses import dataclass
from enum import Enum
from datetime import datetime, timezone

from approval_engine.core.exceptions import BaseAppException, ErrorCode as AppErrorCode


class ErrorCode(str, Enum):
    """Standard error codes for service operations."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Business logic errors
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"

    # Security errors
    UNAUTHORIZED = "UNAUTHORIZED"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_APP_CODE_MAP = {
    AppErrorCode.VALIDATION_ERROR: ErrorCode.VALIDATION_ERROR,
    AppErrorCode.NOTES_REQUIRED: ErrorCode.VALIDATION_ERROR,
    AppErrorCode.POLICY_CONFIGURATION_ERROR: ErrorCode.CONFIGURATION_ERROR,
    AppErrorCode.CONFIGURATION_ERROR: ErrorCode.CONFIGURATION_ERROR,
    AppErrorCode.MISSING_CONFIGURATION: ErrorCode.CONFIGURATION_ERROR,
    AppErrorCode.RESOURCE_NOT_FOUND: ErrorCode.NOT_FOUND,
    AppErrorCode.APPROVAL_CHAIN_NOT_FOUND: ErrorCode.NOT_FOUND,
    AppErrorCode.DUPLICATE_ENTRY: ErrorCode.CONFLICT,
    AppErrorCode.STEP_ALREADY_RESOLVED: ErrorCode.CONFLICT,
    AppErrorCode.CONCURRENT_MODIFICATION: ErrorCode.CONFLICT,
    AppErrorCode.INVALID_APPROVAL_STATE: ErrorCode.INVALID_STATE,
    AppErrorCode.APPROVER_NOT_AUTHORIZED: ErrorCode.UNAUTHORIZED,
    AppErrorCode.EXTERNAL_SERVICE_ERROR: ErrorCode.EXTERNAL_SERVICE_ERROR,
    AppErrorCode.WHATSAPP_API_ERROR: ErrorCode.EXTERNAL_SERVICE_ERROR,
}


@dataclass
class ServiceError:
    """Represents a service operation error with context."""

    code: ErrorCode
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        """Set timestamp if not provided."""
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


TData = TypeVar("TData")


@dataclass
class ServiceResult(Generic[TData]):
    """
    Standardized service operation result with success/failure pattern.

    Attributes:
        is_success: Operation success indicator
        data: Result data (if successful)
        error: Error information (if failed)
        message: Human-readable status message
        metadata: Additional context information
    """

    is_success: bool
    data: Optional[TData] = None
    error: Optional[ServiceError] = None
    message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def success(
        cls,
        data: Optional[TData] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult[TData]":
        """Create a successful result."""
        return cls(
            is_success=True,
            data=data,
            message=message,
            metadata=metadata or {},
        )

    @classmethod
    def failure(
        cls,
        error: ServiceError,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult[TData]":
        """Create a failed result."""
        return cls(
            is_success=False,
            error=error,
            message=error.message,
            metadata=metadata or {},
        )

    @classmethod
    def from_app_exception(
        cls,
        exception: BaseAppException,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> "ServiceResult[TData]":
        """Failure carrying the exception's own user-facing message."""
        return cls.failure(
            ServiceError(
                code=_APP_CODE_MAP.get(exception.error_code, ErrorCode.INTERNAL_ERROR),
                message=exception.message,
                severity=severity,
                details={"error_code": exception.error_code.value, **exception.details},
            )
        )

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        operation: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> "ServiceResult[TData]":
        """Create a failed result from an exception."""
        if isinstance(exception, BaseAppException):
            return cls.from_app_exception(exception)
        return cls.failure(
            ServiceError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"Failed to {operation}: {str(exception)}",
                severity=severity,
                details={"exception_type": type(exception).__name__},
            )
        )

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    def __bool__(self) -> bool:
        return self.is_success


__all__ = ["ErrorCode", "ErrorSeverity", "ServiceError", "ServiceResult"]
