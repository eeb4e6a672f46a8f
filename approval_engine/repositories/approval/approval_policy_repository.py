"""
Approval policy and delegation repositories.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.approval.approval_policy import ApprovalPolicy
from approval_engine.models.approval.approver_delegation import ApproverDelegation
from approval_engine.models.base.enums import ApprovalModule
from approval_engine.repositories.base.base_repository import BaseRepository


class ApprovalPolicyRepository(BaseRepository[ApprovalPolicy]):
    """Tenant approval policies with their ordered levels."""

    def __init__(self, session: AsyncSession):
        super().__init__(ApprovalPolicy, session)

    async def find_active_for_module(self, tenant_id: str, module: ApprovalModule) -> List[ApprovalPolicy]:
        """Active policies ordered by priority desc, then creation order."""
        stmt = (
            select(ApprovalPolicy)
            .where(
                ApprovalPolicy.tenant_id == tenant_id,
                ApprovalPolicy.module == module,
                ApprovalPolicy.is_active.is_(True),
            )
            .order_by(ApprovalPolicy.priority.desc(), ApprovalPolicy.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class ApproverDelegationRepository(BaseRepository[ApproverDelegation]):
    """Approval delegations."""

    def __init__(self, session: AsyncSession):
        super().__init__(ApproverDelegation, session)

    async def find_active_for_delegatee(
        self,
        delegatee_id: str,
        at: datetime,
        delegator_ids: Optional[List[str]] = None,
    ) -> List[ApproverDelegation]:
        """Delegations to ``delegatee_id`` whose window covers ``at``."""
        stmt = select(ApproverDelegation).where(
            ApproverDelegation.delegatee_id == delegatee_id,
            ApproverDelegation.is_active.is_(True),
            ApproverDelegation.start_date <= at,
            ApproverDelegation.end_date >= at,
        )
        if delegator_ids is not None:
            stmt = stmt.where(ApproverDelegation.delegator_id.in_(delegator_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
