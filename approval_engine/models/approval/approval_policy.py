"""
Approval policy database models.

A tenant configures one or more policies per module. Each policy carries
optional amount or day thresholds, a priority, and an ordered list of
levels naming the role required at each level.
"""

from decimal import Decimal
from typing import List

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_engine.models.base.base_model import TenantModel, TimestampModel
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole

__all__ = [
    "ApprovalPolicy",
    "ApprovalLevel",
]


class ApprovalPolicy(TenantModel):
    """
    Tenant approval policy for one module.

    Leave policies match on ``min_days``/``max_days``; spend and asset
    policies match on ``min_amount``/``max_amount``. Higher ``priority``
    wins; ties go to the earlier policy.
    """

    __tablename__ = "approval_policies"
    __table_args__ = (
        Index("ix_approval_policy_module", "tenant_id", "module", "is_active"),
        {"comment": "Tenant approval policies"}
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    module: Mapped[ApprovalModule] = mapped_column(
        Enum(ApprovalModule, native_enum=False, length=32),
        nullable=False,
        comment="Module this policy applies to"
    )

    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Optional category routing key (leave type, spend category)"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    min_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Higher priority policies are evaluated first"
    )

    levels: Mapped[List["ApprovalLevel"]] = relationship(
        back_populates="policy",
        order_by="ApprovalLevel.level_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ApprovalLevel(TimestampModel):
    """One ordered level of an approval policy."""

    __tablename__ = "approval_levels"
    __table_args__ = (
        UniqueConstraint("policy_id", "level_order", name="uq_approval_level_order"),
    )

    policy_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("approval_policies.id", ondelete="CASCADE"),
        nullable=False,
    )

    level_order: Mapped[int] = mapped_column(Integer, nullable=False)

    approver_role: Mapped[ApprovalRole] = mapped_column(
        Enum(ApprovalRole, native_enum=False, length=32),
        nullable=False,
    )

    policy: Mapped["ApprovalPolicy"] = relationship(back_populates="levels")
