"""
Asset request model.
"""

from decimal import Decimal

from sqlalchemy import Enum, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from approval_engine.models.base.base_model import TenantModel
from approval_engine.models.base.enums import RequestStatus
from approval_engine.models.organization.team_member import TeamMember

__all__ = ["AssetRequest"]


class AssetRequest(TenantModel):
    """Request for an asset to be assigned to a member."""

    __tablename__ = "asset_requests"
    __table_args__ = (
        Index("ix_asset_request_member", "member_id"),
        Index("ix_asset_request_status", "tenant_id", "status"),
    )

    member_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("team_members.id", ondelete="CASCADE"),
        nullable=False,
    )

    asset_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    asset_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    asset_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, native_enum=False, length=16),
        nullable=False,
        default=RequestStatus.PENDING,
    )

    member: Mapped[TeamMember] = relationship(lazy="joined")
