"""
WhatsApp Business API configuration models.

Tenants either bring their own account (``WhatsAppConfig``) or send
through the shared platform account (``PlatformWhatsAppConfig``).
Access tokens are stored encrypted.
"""

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TimestampModel

__all__ = [
    "WhatsAppConfig",
    "PlatformWhatsAppConfig",
]


class _WhatsAppAccountColumns:
    """Columns shared by tenant and platform accounts."""

    phone_number_id: Mapped[str] = mapped_column(String(64), nullable=False)
    business_account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    access_token_encrypted: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="AES-256-GCM encrypted access token (iv:tag:ciphertext)"
    )
    webhook_verify_token: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class WhatsAppConfig(_WhatsAppAccountColumns, TimestampModel):
    """Tenant-owned WhatsApp Business account."""

    __tablename__ = "whatsapp_configs"

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )


class PlatformWhatsAppConfig(_WhatsAppAccountColumns, TimestampModel):
    """Shared platform WhatsApp Business account."""

    __tablename__ = "platform_whatsapp_configs"

    display_phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
