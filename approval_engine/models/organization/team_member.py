"""
Team member model.

Holds the org-chart edge (``reporting_to_id``) and the access flags the
role resolver maps approval roles onto.
"""

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_engine.models.base.base_model import SoftDeleteModel
from approval_engine.models.base.enums import ApprovalRole

__all__ = ["TeamMember"]


class TeamMember(SoftDeleteModel):
    """Member of a tenant organization."""

    __tablename__ = "team_members"
    __table_args__ = (
        Index("ix_team_member_tenant", "tenant_id", "is_deleted"),
        Index("ix_team_member_reporting_to", "reporting_to_id"),
    )

    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    reporting_to_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("team_members.id", ondelete="SET NULL"),
        nullable=True,
        comment="Direct manager"
    )

    # Access capabilities
    is_owner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_hr_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_finance_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_operations_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    approval_role: Mapped[ApprovalRole | None] = mapped_column(
        Enum(ApprovalRole, native_enum=False, length=32),
        nullable=True,
        comment="Explicit approval role granted to this member"
    )

    # Contact numbers used as channel fallback
    qatar_mobile: Mapped[str | None] = mapped_column(String(32), nullable=True)
    other_mobile_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    other_mobile_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
