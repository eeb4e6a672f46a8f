"""
Custom Exceptions for the Approval Chain Engine

This module defines custom exception classes used throughout the application
for better error handling and debugging.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"

    # Approval workflow errors
    POLICY_CONFIGURATION_ERROR = "POLICY_CONFIGURATION_ERROR"
    APPROVAL_CHAIN_NOT_FOUND = "APPROVAL_CHAIN_NOT_FOUND"
    INVALID_APPROVAL_STATE = "INVALID_APPROVAL_STATE"
    STEP_ALREADY_RESOLVED = "STEP_ALREADY_RESOLVED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    NOTES_REQUIRED = "NOTES_REQUIRED"
    APPROVER_NOT_AUTHORIZED = "APPROVER_NOT_AUTHORIZED"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    WHATSAPP_API_ERROR = "WHATSAPP_API_ERROR"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MISSING_CONFIGURATION = "MISSING_CONFIGURATION"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation Exceptions
# ========================================

class ValidationError(BaseAppException):
    """Exception raised for input validation errors"""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message, ErrorCode.VALIDATION_ERROR, error_details, 422)


# ========================================
# Policy Exceptions
# ========================================

class PolicyConfigurationError(BaseAppException):
    """
    Raised when tenant approval policy cannot produce a role sequence.

    The request must not enter the workflow when this is raised.
    """

    def __init__(
        self,
        message: str = "Approval policy configuration is missing",
        entity_type: Optional[str] = None,
        dimension: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if entity_type:
            error_details["entity_type"] = entity_type
        if dimension:
            error_details["dimension"] = dimension
        super().__init__(message, ErrorCode.POLICY_CONFIGURATION_ERROR, error_details, 422)


# ========================================
# Approval State Exceptions
# ========================================

class ApprovalStateError(BaseAppException):
    """Base class for rejected approval actions"""

    def __init__(
        self,
        message: str = "Approval action is not allowed in the current state",
        error_code: ErrorCode = ErrorCode.INVALID_APPROVAL_STATE,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 409
    ):
        super().__init__(message, error_code, details, status_code)


class ApprovalChainNotFoundError(ApprovalStateError):
    """Exception raised when an entity has no approval chain"""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"No approval chain found for {entity_type} {entity_id}",
            ErrorCode.APPROVAL_CHAIN_NOT_FOUND,
            {"entity_type": entity_type, "entity_id": entity_id},
            404
        )


class StepAlreadyResolvedError(ApprovalStateError):
    """Exception raised when acting on a step that is no longer pending"""

    def __init__(
        self,
        message: str = "This step was already decided",
        level_order: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if level_order is not None:
            error_details["level_order"] = level_order
        super().__init__(message, ErrorCode.STEP_ALREADY_RESOLVED, error_details)


class ConcurrentModificationError(ApprovalStateError):
    """Exception raised when a conditional update lost a race"""

    def __init__(
        self,
        message: str = "This request was already processed by someone else",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.CONCURRENT_MODIFICATION, details)


class NotesRequiredError(ApprovalStateError):
    """Exception raised when an override is attempted without justification"""

    def __init__(
        self,
        message: str = "Notes are required when acting ahead of a pending level",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.NOTES_REQUIRED, details, 422)


class ApproverNotAuthorizedError(ApprovalStateError):
    """Exception raised when the acting member may not approve the step"""

    def __init__(
        self,
        message: str = "You are not authorized to act on this approval step",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.APPROVER_NOT_AUTHORIZED, details, 403)


# ========================================
# Database Exceptions
# ========================================

class RepositoryError(BaseAppException):
    """Exception raised for persistence failures"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.DATABASE_ERROR, details, 500)


class EntityNotFoundError(RepositoryError):
    """Exception raised when a record lookup by id finds nothing"""

    def __init__(
        self,
        message: str = "Entity not found",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.error_code = ErrorCode.RESOURCE_NOT_FOUND
        self.status_code = 404


class EntityAlreadyExistsError(RepositoryError):
    """Exception raised on unique constraint violations"""

    def __init__(
        self,
        message: str = "Entity already exists",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.error_code = ErrorCode.DUPLICATE_ENTRY
        self.status_code = 409


# ========================================
# External Service Exceptions
# ========================================

class ExternalServiceError(BaseAppException):
    """Exception raised when external service fails"""

    def __init__(
        self,
        service_name: str,
        message: str = "External service error",
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        error_details["service"] = service_name
        super().__init__(message, error_code, error_details, 502)


class WhatsAppApiError(ExternalServiceError):
    """Exception raised by the WhatsApp Cloud API client"""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if code is not None:
            error_details["provider_code"] = code
        super().__init__("whatsapp", message, ErrorCode.WHATSAPP_API_ERROR, error_details)
        self.code = code


# ========================================
# Configuration Exceptions
# ========================================

class ConfigurationError(BaseAppException):
    """Exception raised for configuration errors"""

    def __init__(
        self,
        message: str = "Configuration error",
        config_key: Optional[str] = None
    ):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details, 500)


class MissingConfigurationError(ConfigurationError):
    """Exception raised when a required setting is absent"""

    def __init__(self, config_key: str):
        super().__init__(f"Missing required configuration: {config_key}", config_key)
        self.error_code = ErrorCode.MISSING_CONFIGURATION


__all__ = [
    # Base
    "ErrorCode",
    "BaseAppException",
    "ValidationError",

    # Approval workflow
    "PolicyConfigurationError",
    "ApprovalStateError",
    "ApprovalChainNotFoundError",
    "StepAlreadyResolvedError",
    "ConcurrentModificationError",
    "NotesRequiredError",
    "ApproverNotAuthorizedError",

    # Persistence
    "RepositoryError",
    "EntityNotFoundError",
    "EntityAlreadyExistsError",

    # External
    "ExternalServiceError",
    "WhatsAppApiError",

    # Configuration
    "ConfigurationError",
    "MissingConfigurationError",
]
