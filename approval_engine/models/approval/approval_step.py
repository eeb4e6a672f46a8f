"""
Approval step database model.

One row per (entity, level) in a multi-level approval chain. Rows are never
deleted or reordered; only their status flips from PENDING to a terminal
value, which keeps the chain a replayable audit trail.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import (
    ApprovalModule,
    ApprovalRole,
    ApprovalStepStatus,
)

__all__ = ["ApprovalStep"]


class ApprovalStep(TenantModel):
    """
    A single role-gated checkpoint in an approval chain.

    The current actionable step is never stored: it is the lowest
    ``level_order`` whose status is still PENDING.
    """

    __tablename__ = "approval_steps"
    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "level_order",
            name="uq_approval_step_entity_level",
        ),
        Index("ix_approval_step_entity", "entity_type", "entity_id"),
        Index("ix_approval_step_status", "status"),
        Index("ix_approval_step_approver_id", "approver_id"),
        {"comment": "Ordered approval steps per approvable entity"}
    )

    entity_type: Mapped[ApprovalModule] = mapped_column(
        Enum(ApprovalModule, native_enum=False, length=32),
        nullable=False,
        comment="Type of the approvable request"
    )

    entity_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment="Identifier of the approvable request"
    )

    level_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based position in the chain"
    )

    required_role: Mapped[ApprovalRole] = mapped_column(
        Enum(ApprovalRole, native_enum=False, length=32),
        nullable=False,
        comment="Role required to act on this step"
    )

    status: Mapped[ApprovalStepStatus] = mapped_column(
        Enum(ApprovalStepStatus, native_enum=False, length=16),
        nullable=False,
        default=ApprovalStepStatus.PENDING,
        comment="Step status"
    )

    approver_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        comment="Member who acted on the step"
    )

    action_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        comment="When the step was acted on"
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Decision notes; override justification for skipped steps"
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStepStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<ApprovalStep(entity={self.entity_type}:{self.entity_id}, "
            f"level={self.level_order}, role={self.required_role}, status={self.status})>"
        )
