"""
Role-to-approver resolution.

Maps an abstract approval role onto concrete team members of a tenant
and answers whether a given member may act on a step. Lookups never raise:
"nobody can approve" is a valid answer callers must handle.
"""

from typing import Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import RepositoryError
from approval_engine.models.approval.approval_step import ApprovalStep
from approval_engine.models.base.enums import ApprovalRole
from approval_engine.repositories.approval.approval_policy_repository import ApproverDelegationRepository
from approval_engine.repositories.organization.team_member_repository import TeamMemberRepository
from approval_engine.schemas.approval.approval import ApproverEligibility
from approval_engine.services.base.base_service import BaseService
from approval_engine.utils.date_utils import utcnow

__all__ = ["ApproverResolver", "ACCESS_FLAG_ROLES"]

ACCESS_FLAG_ROLES = {
    ApprovalRole.HR_MANAGER: "has_hr_access",
    ApprovalRole.FINANCE_MANAGER: "has_finance_access",
    ApprovalRole.OPERATIONS_MANAGER: "has_operations_access",
}


class ApproverResolver(BaseService):
    """
    Resolves eligible approvers for approval roles.

    - MANAGER: the requester's direct superior
    - HR/FINANCE/OPERATIONS_MANAGER: active members with the access flag
    - DIRECTOR/ADMIN: active admins, falling back to owners
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.members = TeamMemberRepository(session)
        self.delegations = ApproverDelegationRepository(session)

    # -------------------------------------------------------------------------
    # Role resolution
    # -------------------------------------------------------------------------

    async def resolve_approvers(
        self,
        tenant_id: str,
        role: ApprovalRole,
        requester_id: Optional[str] = None,
    ) -> Set[str]:
        """
        Candidate approver ids for ``role`` within a tenant.

        Returns an empty set for unknown roles and on lookup failure.
        """
        try:
            return await self._resolve(tenant_id, role, requester_id)
        except (RepositoryError, SQLAlchemyError) as e:
            self._logger.error(
                "Approver lookup failed",
                extra={"tenant_id": tenant_id, "role": str(role), "error_message": str(e)},
            )
            return set()

    async def _resolve(self, tenant_id: str, role, requester_id: Optional[str]) -> Set[str]:
        try:
            role = ApprovalRole(role)
        except ValueError:
            self._logger.warning("Unknown approval role", extra={"role": str(role)})
            return set()

        if role == ApprovalRole.MANAGER:
            if not requester_id:
                return set()
            manager_id = await self.members.get_reporting_to_id(requester_id)
            return {manager_id} if manager_id else set()

        flag = ACCESS_FLAG_ROLES.get(role)
        if flag is not None:
            return set(await self.members.find_ids_with_flag(tenant_id, flag))

        if role in (ApprovalRole.DIRECTOR, ApprovalRole.ADMIN):
            admins = await self.members.find_ids_with_flag(tenant_id, "is_admin")
            if admins:
                return set(admins)
            return set(await self.members.find_ids_with_flag(tenant_id, "is_owner"))

        return set()

    # -------------------------------------------------------------------------
    # Eligibility
    # -------------------------------------------------------------------------

    async def can_member_approve(
        self,
        member_id: str,
        step: ApprovalStep,
        requester_id: Optional[str] = None,
    ) -> ApproverEligibility:
        """
        Whether ``member_id`` may act on ``step``.

        Admins may act on any step. Otherwise the member must be resolved
        for the step's role, hold it as their explicit approval role, or
        hold an active delegation from someone who does.
        """
        member = await self.members.find_by_id(member_id)
        if member is None or member.tenant_id != step.tenant_id:
            return ApproverEligibility(can_approve=False, reason="Member not found")

        if requester_id and member_id == requester_id:
            return ApproverEligibility(
                can_approve=False,
                reason="Requesters cannot approve their own request",
            )

        if member.is_admin:
            return ApproverEligibility(can_approve=True)

        if member.approval_role == step.required_role:
            return ApproverEligibility(can_approve=True)

        candidates = await self.resolve_approvers(step.tenant_id, step.required_role, requester_id)
        if member_id in candidates:
            return ApproverEligibility(can_approve=True)

        if await self._has_delegation(member_id, step, candidates):
            return ApproverEligibility(can_approve=True, via_delegation=True)

        return ApproverEligibility(
            can_approve=False,
            reason=f"Requires {step.required_role.value} role or delegation",
        )

    async def _has_delegation(self, member_id: str, step: ApprovalStep, candidates: Set[str]) -> bool:
        delegations = await self.delegations.find_active_for_delegatee(member_id, utcnow())
        for delegation in delegations:
            if delegation.tenant_id != step.tenant_id:
                continue
            if delegation.delegator_id in candidates:
                return True
            delegator = await self.members.find_by_id(delegation.delegator_id)
            if delegator is not None and delegator.approval_role == step.required_role:
                return True
        return False

