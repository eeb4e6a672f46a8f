"""
Meta webhook payload schemas.

Only the fields the handler reads are declared; everything else is kept
but ignored.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "WebhookPayload",
    "WebhookEntry",
    "WebhookChange",
    "WebhookValue",
    "WebhookMessage",
    "WebhookStatus",
    "WebhookHandlingSummary",
]


class _WebhookModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class WebhookButton(_WebhookModel):
    payload: str
    text: Optional[str] = None


class WebhookButtonReply(_WebhookModel):
    id: str
    title: Optional[str] = None


class WebhookInteractive(_WebhookModel):
    type: Optional[str] = None
    button_reply: Optional[WebhookButtonReply] = None


class WebhookMessage(_WebhookModel):
    id: Optional[str] = None
    sender: str = Field(..., alias="from")
    type: str
    button: Optional[WebhookButton] = None
    interactive: Optional[WebhookInteractive] = None

    def action_payload(self) -> Optional[str]:
        """Token carried by a quick-reply or interactive button, if any."""
        if self.type == "button" and self.button is not None:
            return self.button.payload
        if (
            self.type == "interactive"
            and self.interactive is not None
            and self.interactive.button_reply is not None
        ):
            return self.interactive.button_reply.id
        return None


class WebhookStatusError(_WebhookModel):
    code: Optional[int] = None
    title: Optional[str] = None
    message: Optional[str] = None


class WebhookStatus(_WebhookModel):
    id: str
    status: str
    recipient_id: Optional[str] = None
    errors: List[WebhookStatusError] = Field(default_factory=list)

    def error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        first = self.errors[0]
        return first.message or first.title


class WebhookMetadata(_WebhookModel):
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None


class WebhookValue(_WebhookModel):
    messaging_product: Optional[str] = None
    metadata: Optional[WebhookMetadata] = None
    messages: List[WebhookMessage] = Field(default_factory=list)
    statuses: List[WebhookStatus] = Field(default_factory=list)


class WebhookChange(_WebhookModel):
    field: str
    value: WebhookValue


class WebhookEntry(_WebhookModel):
    id: Optional[str] = None
    changes: List[WebhookChange] = Field(default_factory=list)


class WebhookPayload(_WebhookModel):
    object: Optional[str] = None
    entry: List[WebhookEntry] = Field(default_factory=list)


class WebhookHandlingSummary(BaseModel):
    """Counts reported back by the webhook handler."""

    statuses_updated: int = 0
    actions_processed: int = 0
    actions_ignored: int = 0
