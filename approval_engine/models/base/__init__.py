from .base_model import Base, BaseModel, TimestampModel, SoftDeleteModel, TenantModel
from .enums import (
    ApprovalAction,
    ApprovalModule,
    ApprovalRole,
    ApprovalStepStatus,
    ChainStatus,
    MessageStatus,
    RequestStatus,
    WhatsAppSource,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampModel",
    "SoftDeleteModel",
    "TenantModel",
    "ApprovalAction",
    "ApprovalModule",
    "ApprovalRole",
    "ApprovalStepStatus",
    "ChainStatus",
    "MessageStatus",
    "RequestStatus",
    "WhatsAppSource",
]
