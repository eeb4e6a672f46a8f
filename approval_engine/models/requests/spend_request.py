"""
Spend request model.
"""

from decimal import Decimal

from sqlalchemy import Enum, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import RequestStatus
from approval_engine.models.organization.team_member import TeamMember

__all__ = ["SpendRequest"]


class SpendRequest(TenantModel):
    """Purchase/spend request routed by amount."""

    __tablename__ = "spend_requests"
    __table_args__ = (
        Index("ix_spend_request_requester", "requester_id"),
        Index("ix_spend_request_status", "tenant_id", "status"),
    )

    requester_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, native_enum=False, length=16),
        nullable=False,
        default=RequestStatus.PENDING,
    )

    requester: Mapped[TeamMember] = relationship(lazy="joined")
