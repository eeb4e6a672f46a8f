"""
WhatsApp action token model.

A short-lived, single-use credential that lets a chat button approve or
reject one request without a login session.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import ApprovalAction, ApprovalModule

__all__ = ["ActionToken"]


class ActionToken(TenantModel):
    """Persisted action token. ``used`` flips to True exactly once."""

    __tablename__ = "whatsapp_action_tokens"
    __table_args__ = (
        Index("ix_action_token_entity", "entity_type", "entity_id"),
        Index("ix_action_token_expires_at", "expires_at"),
        {"comment": "Signed single-use approval action tokens"}
    )

    token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="{tokenId}:{signature}"
    )

    entity_type: Mapped[ApprovalModule] = mapped_column(
        Enum(ApprovalModule, native_enum=False, length=32),
        nullable=False,
    )
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    action: Mapped[ApprovalAction] = mapped_column(
        Enum(
            ApprovalAction,
            native_enum=False,
            length=16,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    approver_id: Mapped[str] = mapped_column(String(36), nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def token_id(self) -> str:
        return self.token.split(':', 1)[0]
