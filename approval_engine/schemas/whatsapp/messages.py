"""
WhatsApp message, template and configuration schemas.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field

from approval_engine.models.base.enums import WhatsAppSource
from approval_engine.schemas.common.base import BaseSchema

__all__ = [
    "TemplateParameter",
    "TemplateComponent",
    "TemplateMessage",
    "ApprovalDetails",
    "WhatsAppConfigData",
    "EffectiveWhatsAppConfig",
    "CanSendResult",
]


class TemplateParameter(BaseSchema):
    type: Literal["text", "payload"]
    text: Optional[str] = None
    payload: Optional[str] = None


class TemplateComponent(BaseSchema):
    type: Literal["header", "body", "button"]
    sub_type: Optional[Literal["quick_reply", "url"]] = None
    index: Optional[int] = None
    parameters: List[TemplateParameter] = Field(default_factory=list)

    def to_api(self) -> dict:
        """Graph API shape (``sub_type``/``index`` only on buttons)."""
        return self.model_dump(exclude_none=True)


class TemplateMessage(BaseSchema):
    to: str
    template_name: str
    language_code: str = "en"
    components: List[TemplateComponent]

    def body_parameters(self) -> List[TemplateParameter]:
        for component in self.components:
            if component.type == "body":
                return component.parameters
        return []

    def buttons(self) -> List[TemplateComponent]:
        return [c for c in self.components if c.type == "button"]


class ApprovalDetails(BaseSchema):
    """Entity facts rendered into templates and confirmations."""

    requester_name: str = "Employee"
    requester_id: Optional[str] = None

    # Leave
    leave_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_days: Optional[Decimal] = None
    reason: Optional[str] = None

    # Spend
    title: Optional[str] = None
    total_amount: Optional[Decimal] = None
    currency: Optional[str] = None

    # Asset
    asset_name: Optional[str] = None
    asset_type: Optional[str] = None
    justification: Optional[str] = None


class WhatsAppConfigData(BaseSchema):
    """Decrypted account configuration. Never log this object."""

    phone_number_id: str
    business_account_id: str
    access_token: str = Field(..., repr=False)
    webhook_verify_token: Optional[str] = Field(default=None, repr=False)
    is_active: bool = True


class EffectiveWhatsAppConfig(BaseSchema):
    config: WhatsAppConfigData
    source: WhatsAppSource


class CanSendResult(BaseSchema):
    can_send: bool
    reason: Optional[str] = None
    phone: Optional[str] = None
