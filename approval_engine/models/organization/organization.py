"""
Organization (tenant) model.

Only the attributes the approval workflow reads are mapped here.
"""

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TimestampModel
from approval_engine.models.base.enums import WhatsAppSource

__all__ = ["Organization"]


class Organization(TimestampModel):
    """Tenant record with its WhatsApp channel selection."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    whatsapp_source: Mapped[WhatsAppSource] = mapped_column(
        Enum(WhatsAppSource, native_enum=False, length=16),
        nullable=False,
        default=WhatsAppSource.NONE,
        comment="NONE, PLATFORM (shared account) or CUSTOM (own account)"
    )

    whatsapp_platform_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Platform operator permission to use the shared account"
    )
