"""
HMAC helpers for action tokens and webhook payload verification.
"""

import hashlib
import hmac
from typing import Optional

from approval_engine.config.settings import Settings, settings as default_settings
from approval_engine.core.exceptions import MissingConfigurationError
from approval_engine.core.logging import get_logger

logger = get_logger(__name__)


class HMACHelper:
    """HMAC utilities for message authentication"""

    @staticmethod
    def generate_hmac(message: str, secret_key: str) -> str:
        """HMAC-SHA256 of ``message`` as lowercase hex."""
        mac = hmac.new(
            secret_key.encode(),
            message.encode(),
            hashlib.sha256
        )
        return mac.hexdigest()

    @staticmethod
    def verify_hmac(message: str, secret_key: str, expected_hmac: str,
                    length: Optional[int] = None) -> bool:
        """Constant-time check, optionally against a truncated digest."""
        calculated = HMACHelper.generate_hmac(message, secret_key)
        if length is not None:
            calculated = calculated[:length]
        return hmac.compare_digest(calculated, expected_hmac)

    @staticmethod
    def generate_webhook_signature(payload: bytes, secret: str) -> str:
        signature = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        return f"sha256={signature}"

    @staticmethod
    def verify_webhook_signature(payload: bytes, secret: str,
                                 signature_header: Optional[str]) -> bool:
        """Verify an ``X-Hub-Signature-256`` header against the raw body."""
        if not signature_header:
            return False
        expected = HMACHelper.generate_webhook_signature(payload, secret)
        return hmac.compare_digest(expected, signature_header)


def _resolve_secret(value: Optional[str], config_key: str, settings: Settings) -> str:
    if value:
        return value
    if settings.is_production():
        raise MissingConfigurationError(config_key)
    if settings.SESSION_SECRET:
        logger.warning(
            "Falling back to session secret",
            extra={'config_key': config_key, 'environment': settings.ENVIRONMENT}
        )
        return settings.SESSION_SECRET
    raise MissingConfigurationError(config_key)


def get_signing_key(settings: Optional[Settings] = None) -> str:
    """Server-held key used to sign action tokens."""
    settings = settings or default_settings
    return _resolve_secret(settings.ACTION_TOKEN_SIGNING_KEY, "WHATSAPP_ENCRYPTION_KEY", settings)


def get_encryption_key(settings: Optional[Settings] = None) -> str:
    """Key material for channel access token encryption."""
    settings = settings or default_settings
    return _resolve_secret(
        settings.CHANNEL_ENCRYPTION_KEY or settings.ACTION_TOKEN_SIGNING_KEY,
        "CHANNEL_ENCRYPTION_KEY",
        settings,
    )


__all__ = ["HMACHelper", "get_signing_key", "get_encryption_key"]
