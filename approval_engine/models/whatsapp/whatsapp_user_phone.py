"""
Registered WhatsApp number per team member.
"""

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TenantModel

__all__ = ["WhatsAppUserPhone"]


class WhatsAppUserPhone(TenantModel):
    """E.164 number a member registered for approval messages."""

    __tablename__ = "whatsapp_user_phones"

    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)

    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Reset whenever the number changes"
    )
