"""
Leave request model.

Carries the attributes the approval workflow reads: duration for policy
matching, plus dates, leave type and reason for notification templates.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import RequestStatus
from approval_engine.models.organization.team_member import TeamMember

__all__ = ["LeaveRequest"]


class LeaveRequest(TenantModel):
    """Employee leave request."""

    __tablename__ = "leave_requests"
    __table_args__ = (
        Index("ix_leave_request_member", "member_id"),
        Index("ix_leave_request_status", "tenant_id", "status"),
    )

    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
    )

    leave_type: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False, default=0)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, native_enum=False, length=16),
        nullable=False,
        default=RequestStatus.PENDING,
    )

    member: Mapped[TeamMember] = relationship(lazy="joined")
