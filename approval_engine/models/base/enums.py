"""
Database enums mirroring schema enums.

Provides SQLAlchemy-compatible enum definitions shared by the
models, repositories and Pydantic schemas.
"""

import enum


class ApprovalModule(str, enum.Enum):
    """Approvable entity types."""
    LEAVE_REQUEST = "LEAVE_REQUEST"
    SPEND_REQUEST = "SPEND_REQUEST"
    ASSET_REQUEST = "ASSET_REQUEST"


class ApprovalRole(str, enum.Enum):
    """Role required to act on an approval step."""
    MANAGER = "MANAGER"
    HR_MANAGER = "HR_MANAGER"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    OPERATIONS_MANAGER = "OPERATIONS_MANAGER"
    DIRECTOR = "DIRECTOR"
    ADMIN = "ADMIN"


class ApprovalStepStatus(str, enum.Enum):
    """Per-step status. Anything other than PENDING is terminal."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class ChainStatus(str, enum.Enum):
    """Derived chain-level status."""
    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ApprovalAction(str, enum.Enum):
    """Action an approver can take."""
    APPROVE = "approve"
    REJECT = "reject"


class RequestStatus(str, enum.Enum):
    """Lifecycle status of an approvable request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class WhatsAppSource(str, enum.Enum):
    """Which WhatsApp Business account a tenant sends through."""
    NONE = "NONE"
    PLATFORM = "PLATFORM"
    CUSTOM = "CUSTOM"


class MessageStatus(str, enum.Enum):
    """Delivery status of an outbound channel message."""
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


__all__ = [
    "ApprovalModule",
    "ApprovalRole",
    "ApprovalStepStatus",
    "ChainStatus",
    "ApprovalAction",
    "RequestStatus",
    "WhatsAppSource",
    "MessageStatus",
]
