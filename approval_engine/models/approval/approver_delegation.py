"""
Approver delegation model.

Lets a member hand their approval rights to another member for a
bounded period (e.g. while on leave).
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TenantModel

__all__ = ["ApproverDelegation"]


class ApproverDelegation(TenantModel):
    """Active window during which ``delegatee_id`` may act for ``delegator_id``."""

    __tablename__ = "approver_delegations"
    __table_args__ = (
        Index("ix_delegation_delegatee", "delegatee_id", "is_active"),
        Index("ix_delegation_window", "start_date", "end_date"),
    )

    delegator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    delegatee_id: Mapped[str] = mapped_column(String(36), nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
