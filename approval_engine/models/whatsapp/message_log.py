"""
Outbound WhatsApp message log.

One row per send attempt. Delivery status callbacks update the row keyed
by the provider message id; they never touch approval state.
"""

from sqlalchemy import Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import ApprovalModule, MessageStatus

__all__ = ["WhatsAppMessageLog"]


class WhatsAppMessageLog(TenantModel):
    """Send attempt and its latest delivery status."""

    __tablename__ = "whatsapp_message_logs"
    __table_args__ = (
        Index("ix_message_log_wa_message_id", "wa_message_id"),
        Index("ix_message_log_entity", "entity_type", "entity_id"),
        {"comment": "WhatsApp notification delivery log"}
    )

    recipient: Mapped[str] = mapped_column(String(32), nullable=False)
    template_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    wa_message_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[MessageStatus] = mapped_column(
        Enum(
            MessageStatus,
            native_enum=False,
            length=16,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=MessageStatus.PENDING,
    )

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    entity_type: Mapped[ApprovalModule | None] = mapped_column(
        Enum(ApprovalModule, native_enum=False, length=32),
        nullable=True,
    )
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
