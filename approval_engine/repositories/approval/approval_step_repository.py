"""
Approval Step Repository

Ordered reads of a chain and the PENDING-guarded status transitions the
chain engine relies on.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.approval.approval_step import ApprovalStep
from approval_engine.models.base.enums import ApprovalModule, ApprovalStepStatus
from approval_engine.repositories.base.base_repository import BaseRepository


class ApprovalStepRepository(BaseRepository[ApprovalStep]):
    """Approval step persistence."""

    def __init__(self, session: AsyncSession):
        super().__init__(ApprovalStep, session)

    # ============================================================================
    # READS
    # ============================================================================

    async def get_chain(self, entity_type: ApprovalModule, entity_id: str) -> List[ApprovalStep]:
        """All steps for an entity ordered by level, freshly loaded."""
        stmt = (
            select(ApprovalStep)
            .where(
                ApprovalStep.entity_type == entity_type,
                ApprovalStep.entity_id == entity_id,
            )
            .order_by(ApprovalStep.level_order)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_chain(self, entity_type: ApprovalModule, entity_id: str) -> bool:
        stmt = (
            select(ApprovalStep.id)
            .where(
                ApprovalStep.entity_type == entity_type,
                ApprovalStep.entity_id == entity_id,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def find_pending_steps(
        self,
        tenant_id: str,
        roles: Optional[Iterable] = None,
    ) -> List[ApprovalStep]:
        """PENDING steps of a tenant, optionally restricted to roles."""
        stmt = select(ApprovalStep).where(
            ApprovalStep.tenant_id == tenant_id,
            ApprovalStep.status == ApprovalStepStatus.PENDING,
        )
        if roles is not None:
            stmt = stmt.where(ApprovalStep.required_role.in_(list(roles)))
        stmt = stmt.order_by(
            ApprovalStep.entity_type,
            ApprovalStep.entity_id,
            ApprovalStep.level_order,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ============================================================================
    # GUARDED TRANSITIONS
    # ============================================================================

    async def resolve_if_pending(
        self,
        step_id: str,
        status: ApprovalStepStatus,
        approver_id: Optional[str],
        action_at: datetime,
        notes: Optional[str],
    ) -> bool:
        """Flip one step out of PENDING. False when the guard lost."""
        affected = await self.conditional_update(
            (
                ApprovalStep.id == step_id,
                ApprovalStep.status == ApprovalStepStatus.PENDING,
            ),
            {
                "status": status,
                "approver_id": approver_id,
                "action_at": action_at,
                "notes": notes,
            },
        )
        return affected == 1

    async def skip_pending(
        self,
        step_ids: List[str],
        action_at: datetime,
        notes: Optional[str] = None,
        approver_id: Optional[str] = None,
    ) -> int:
        """Mark the given steps SKIPPED where still PENDING; returns the count."""
        if not step_ids:
            return 0
        return await self.conditional_update(
            (
                ApprovalStep.id.in_(step_ids),
                ApprovalStep.status == ApprovalStepStatus.PENDING,
            ),
            {
                "status": ApprovalStepStatus.SKIPPED,
                "approver_id": approver_id,
                "action_at": action_at,
                "notes": notes,
            },
        )
