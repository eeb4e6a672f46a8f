from .action_token_repository import ActionTokenRepository
from .whatsapp_repository import (
    MessageLogRepository,
    WhatsAppConfigRepository,
    WhatsAppUserPhoneRepository,
)

__all__ = [
    "ActionTokenRepository",
    "MessageLogRepository",
    "WhatsAppConfigRepository",
    "WhatsAppUserPhoneRepository",
]
