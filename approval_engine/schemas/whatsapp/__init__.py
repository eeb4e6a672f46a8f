from .messages import (
    ApprovalDetails,
    CanSendResult,
    EffectiveWhatsAppConfig,
    TemplateComponent,
    TemplateMessage,
    TemplateParameter,
    WhatsAppConfigData,
)
from .tokens import TokenError, TokenPair, TokenPayload, TokenValidationResult
from .webhook import WebhookHandlingSummary, WebhookPayload

__all__ = [
    "ApprovalDetails",
    "CanSendResult",
    "EffectiveWhatsAppConfig",
    "TemplateComponent",
    "TemplateMessage",
    "TemplateParameter",
    "WhatsAppConfigData",
    "TokenError",
    "TokenPair",
    "TokenPayload",
    "TokenValidationResult",
    "WebhookHandlingSummary",
    "WebhookPayload",
]
