# models/__init__.py
from .base import Base
from .organization import Organization, TeamMember
from .approval import ApprovalStep, ApprovalPolicy, ApprovalLevel, ApproverDelegation
from .requests import LeaveRequest, SpendRequest, AssetRequest
from .whatsapp import (
    ActionToken,
    WhatsAppConfig,
    PlatformWhatsAppConfig,
    WhatsAppUserPhone,
    WhatsAppMessageLog,
)

__all__ = [
    "Base",
    "Organization",
    "TeamMember",
    "ApprovalStep",
    "ApprovalPolicy",
    "ApprovalLevel",
    "ApproverDelegation",
    "LeaveRequest",
    "SpendRequest",
    "AssetRequest",
    "ActionToken",
    "WhatsAppConfig",
    "PlatformWhatsAppConfig",
    "WhatsAppUserPhone",
    "WhatsAppMessageLog",
]
