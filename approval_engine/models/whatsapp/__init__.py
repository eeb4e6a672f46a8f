"""WhatsApp channel models."""

from .action_token import ActionToken
from .whatsapp_config import WhatsAppConfig, PlatformWhatsAppConfig
from .whatsapp_user_phone import WhatsAppUserPhone
from .message_log import WhatsAppMessageLog

__all__ = [
    "ActionToken",
    "WhatsAppConfig",
    "PlatformWhatsAppConfig",
    "WhatsAppUserPhone",
    "WhatsAppMessageLog",
]
