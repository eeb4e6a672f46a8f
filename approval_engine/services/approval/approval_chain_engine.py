"""
Approval chain engine.

A chain is the ordered list of ``ApprovalStep`` rows for one request. The
engine only ever flips step status out of PENDING; it never deletes or
reorders rows. The current actionable step is derived on every read as the
lowest-level PENDING step.

Every status flip is a conditional ``UPDATE ... WHERE status = 'PENDING'``.
A guard that matches no row means another actor got there first, so the
whole transaction is rolled back and ``ConcurrentModificationError`` raised.
"""

from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import (
    ApprovalChainNotFoundError,
    ApprovalStateError,
    ConcurrentModificationError,
    EntityAlreadyExistsError,
    NotesRequiredError,
    StepAlreadyResolvedError,
)
from approval_engine.models.approval.approval_step import ApprovalStep
from approval_engine.models.base.enums import (
    ApprovalAction,
    ApprovalModule,
    ApprovalRole,
    ApprovalStepStatus,
    ChainStatus,
)
from approval_engine.repositories.approval.approval_step_repository import ApprovalStepRepository
from approval_engine.schemas.approval.approval import (
    ActionOutcome,
    ApprovalStepResponse,
    ApprovalSummary,
)
from approval_engine.services.approval.approver_resolver import ApproverResolver
from approval_engine.services.base.base_service import BaseService
from approval_engine.services.notification.entity_variants import get_variant
from approval_engine.utils.date_utils import utcnow

__all__ = [
    "ApprovalChainEngine",
    "compute_summary",
    "current_step",
    "chain_status",
    "ADMIN_BYPASS_NOTES",
]

ADMIN_BYPASS_NOTES = "Approved by admin (bypass)"

_COMPLETED = (
    ApprovalStepStatus.APPROVED,
    ApprovalStepStatus.REJECTED,
    ApprovalStepStatus.SKIPPED,
)


# =============================================================================
# Pure derivations
# =============================================================================

def current_step(steps: Sequence[ApprovalStep]) -> Optional[ApprovalStep]:
    """Lowest-level PENDING step, or None when nothing is actionable."""
    pending = [s for s in steps if s.status == ApprovalStepStatus.PENDING]
    if not pending:
        return None
    return min(pending, key=lambda s: s.level_order)


def chain_status(steps: Sequence[ApprovalStep]) -> ChainStatus:
    if not steps:
        return ChainStatus.NOT_STARTED
    statuses = {s.status for s in steps}
    # A single rejection is final regardless of what is still pending.
    if ApprovalStepStatus.REJECTED in statuses:
        return ChainStatus.REJECTED
    if ApprovalStepStatus.PENDING in statuses:
        return ChainStatus.PENDING
    # Completion and overrides always approve the top level; cancel skips it.
    top = max(steps, key=lambda s: s.level_order)
    if top.status == ApprovalStepStatus.APPROVED:
        return ChainStatus.APPROVED
    return ChainStatus.CANCELLED


def compute_summary(steps: Sequence[ApprovalStep], can_approve: bool = False) -> ApprovalSummary:
    """
    Derive the chain summary from its steps.

    Args:
        steps: All steps of one chain, in any order
        can_approve: Whether the asking member may act on the current step

    Returns:
        ApprovalSummary; ``can_current_user_approve`` is only ever true
        while there is a current step.
    """
    current = current_step(steps)
    return ApprovalSummary(
        total_steps=len(steps),
        completed_steps=sum(1 for s in steps if s.status in _COMPLETED),
        current_step=current.level_order if current else None,
        current_role=current.required_role if current else None,
        status=chain_status(steps),
        can_current_user_approve=bool(can_approve and current is not None),
    )


def _step_views(steps: Sequence[ApprovalStep]) -> List[ApprovalStepResponse]:
    return [ApprovalStepResponse.model_validate(s) for s in steps]


# =============================================================================
# Engine
# =============================================================================

class ApprovalChainEngine(BaseService):
    """
    State machine over persisted approval steps.

    Each mutating operation runs in its own transaction on the given
    session and commits before returning.
    """

    def __init__(self, session: AsyncSession, approvers: Optional[ApproverResolver] = None):
        super().__init__(session)
        self.steps = ApprovalStepRepository(session)
        self.approvers = approvers or ApproverResolver(session)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_chain(self, entity_type: ApprovalModule, entity_id: str) -> List[ApprovalStep]:
        return await self.steps.get_chain(ApprovalModule(entity_type), entity_id)

    async def get_current_step(self, entity_type: ApprovalModule, entity_id: str) -> Optional[ApprovalStep]:
        return current_step(await self.get_chain(entity_type, entity_id))

    async def has_chain(self, entity_type: ApprovalModule, entity_id: str) -> bool:
        return await self.steps.has_chain(ApprovalModule(entity_type), entity_id)

    async def is_fully_approved(self, entity_type: ApprovalModule, entity_id: str) -> bool:
        steps = await self.get_chain(entity_type, entity_id)
        return chain_status(steps) == ChainStatus.APPROVED

    async def was_rejected(self, entity_type: ApprovalModule, entity_id: str) -> bool:
        steps = await self.get_chain(entity_type, entity_id)
        return chain_status(steps) == ChainStatus.REJECTED

    async def get_summary(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        asking_member_id: Optional[str] = None,
        requester_id: Optional[str] = None,
    ) -> ApprovalSummary:
        """Summary of a chain with the asking member's right to act resolved."""
        steps = await self.get_chain(entity_type, entity_id)
        current = current_step(steps)
        can_approve = False
        if asking_member_id and current is not None:
            if requester_id is None:
                requester_id = await get_variant(entity_type).get_requester_id(self.session, entity_id)
            eligibility = await self.approvers.can_member_approve(asking_member_id, current, requester_id)
            can_approve = eligibility.can_approve
        return compute_summary(steps, can_approve)

    async def get_pending_for_member(self, tenant_id: str, member_id: str) -> List[ApprovalStep]:
        """
        Current steps across the tenant that ``member_id`` may act on.

        Only the actionable step of each chain is considered; higher PENDING
        levels are never returned. Admin rights and delegations are honoured.
        """
        heads = {}
        for step in await self.steps.find_pending_steps(tenant_id):
            heads.setdefault((step.entity_type, step.entity_id), step)

        actionable = []
        for (entity_type, entity_id), step in heads.items():
            # Rejected chains keep their upper steps PENDING but are closed.
            if await self.was_rejected(entity_type, entity_id):
                continue
            requester_id = await get_variant(entity_type).get_requester_id(self.session, entity_id)
            eligibility = await self.approvers.can_member_approve(member_id, step, requester_id)
            if eligibility.can_approve:
                actionable.append(step)
        return actionable

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def initialize_chain(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        roles: Sequence[ApprovalRole],
        tenant_id: str,
    ) -> List[ApprovalStep]:
        """
        Create one PENDING step per role, levels 1..N, in one flush.

        An empty ``roles`` creates nothing; the caller auto-approves.

        Raises:
            EntityAlreadyExistsError: If the entity already has a chain
        """
        if not roles:
            self._logger.info(
                "Empty approval chain, nothing to initialize",
                extra={"entity_type": str(entity_type), "entity_id": entity_id},
            )
            return []

        entity_type = ApprovalModule(entity_type)
        if await self.steps.has_chain(entity_type, entity_id):
            raise EntityAlreadyExistsError(
                "Approval chain already exists",
                {"entity_type": entity_type.value, "entity_id": entity_id},
            )

        steps = [
            ApprovalStep(
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                level_order=index,
                required_role=ApprovalRole(role),
                status=ApprovalStepStatus.PENDING,
            )
            for index, role in enumerate(roles, start=1)
        ]
        async with self.transaction():
            created = await self.steps.create_many(steps)

        self._logger.info(
            "Approval chain initialized",
            extra={
                "entity_type": entity_type.value,
                "entity_id": entity_id,
                "tenant_id": tenant_id,
                "levels": len(created),
            },
        )
        return created

    async def record_action(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        acting_approver_id: str,
        target_level_order: int,
        action: ApprovalAction,
        notes: Optional[str] = None,
    ) -> ActionOutcome:
        """
        Record an approve/reject decision at ``target_level_order``.

        Acting at the current level resolves it. Acting above it is an
        override: every PENDING step from the current level up to (not
        including) the target is SKIPPED with ``notes`` and the target step
        takes the decision. Acting below it is stale.

        Raises:
            ApprovalChainNotFoundError: No steps exist for the entity
            StepAlreadyResolvedError: Chain resolved or target level stale
            ApprovalStateError: Target level does not exist
            NotesRequiredError: Override without notes; nothing is mutated
            ConcurrentModificationError: A guarded update lost a race
        """
        entity_type = ApprovalModule(entity_type)
        action = ApprovalAction(action)
        notes = notes.strip() if notes and notes.strip() else None
        log_context = {
            "entity_type": entity_type.value,
            "entity_id": entity_id,
            "approver_id": acting_approver_id,
            "target_level": target_level_order,
            "action": action.value,
        }

        # Reads and checks only; nothing is written before the transaction.
        steps = await self.steps.get_chain(entity_type, entity_id)
        if not steps:
            raise ApprovalChainNotFoundError(entity_type.value, entity_id)

        if chain_status(steps) == ChainStatus.REJECTED:
            raise StepAlreadyResolvedError(
                "This request was already rejected",
                level_order=target_level_order,
            )

        current = current_step(steps)
        if current is None:
            raise StepAlreadyResolvedError(
                "This request was cancelled"
                if chain_status(steps) == ChainStatus.CANCELLED
                else "This request was already fully approved",
                level_order=target_level_order,
            )

        by_level = {s.level_order: s for s in steps}
        target = by_level.get(target_level_order)
        if target is None:
            raise ApprovalStateError(
                f"Approval level {target_level_order} does not exist",
                details={"level_order": target_level_order, "total_steps": len(steps)},
            )

        if target_level_order < current.level_order:
            raise StepAlreadyResolvedError(level_order=target_level_order)

        is_override = target_level_order > current.level_order
        skipped: List[ApprovalStep] = []
        if is_override:
            if notes is None:
                raise NotesRequiredError(details={"level_order": target_level_order})
            skipped = [
                s for s in steps
                if current.level_order <= s.level_order < target_level_order
                and s.status == ApprovalStepStatus.PENDING
            ]
        skipped_ids = [s.id for s in skipped]
        skipped_levels = [s.level_order for s in skipped]
        target_id = target.id
        new_status = (
            ApprovalStepStatus.APPROVED if action == ApprovalAction.APPROVE
            else ApprovalStepStatus.REJECTED
        )

        async with self.transaction():
            now = utcnow()
            if skipped_ids:
                affected = await self.steps.skip_pending(
                    skipped_ids, now, notes=notes, approver_id=acting_approver_id,
                )
                if affected != len(skipped_ids):
                    raise ConcurrentModificationError(details=log_context)

            won = await self.steps.resolve_if_pending(
                target_id, new_status, acting_approver_id, now, notes,
            )
            if not won:
                raise ConcurrentModificationError(details=log_context)

        steps = await self.steps.get_chain(entity_type, entity_id)
        status = chain_status(steps)
        next_step = current_step(steps) if status == ChainStatus.PENDING else None

        self._logger.info(
            "Approval action recorded",
            extra={
                **log_context,
                "is_override": is_override,
                "skipped_levels": skipped_levels,
                "chain_status": status.value,
            },
        )

        return ActionOutcome(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            acted_level=target_level_order,
            chain_status=status,
            is_chain_complete=status != ChainStatus.PENDING,
            is_override=is_override,
            skipped_levels=skipped_levels,
            next_step=ApprovalStepResponse.model_validate(next_step) if next_step else None,
            steps=_step_views(steps),
        )

    async def cancel_chain(self, entity_type: ApprovalModule, entity_id: str) -> int:
        """
        Skip every PENDING step of a chain that is still in progress.

        Returns:
            Number of steps skipped; 0 when the chain is missing or already
            resolved, in which case nothing is touched.
        """
        entity_type = ApprovalModule(entity_type)
        async with self.transaction():
            steps = await self.steps.get_chain(entity_type, entity_id)
            if chain_status(steps) != ChainStatus.PENDING:
                return 0
            pending_ids = [s.id for s in steps if s.status == ApprovalStepStatus.PENDING]
            affected = await self.steps.skip_pending(pending_ids, utcnow(), notes="Request cancelled")

        self._logger.info(
            "Approval chain cancelled",
            extra={"entity_type": entity_type.value, "entity_id": entity_id, "skipped": affected},
        )
        return affected

    async def admin_bypass(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        admin_id: str,
        notes: Optional[str] = None,
    ) -> List[ApprovalStep]:
        """
        Approve every remaining PENDING step on behalf of an admin.

        Raises:
            ApprovalChainNotFoundError: No steps exist for the entity
            StepAlreadyResolvedError: Chain is no longer pending
            ConcurrentModificationError: A guarded update lost a race
        """
        entity_type = ApprovalModule(entity_type)
        notes = notes or ADMIN_BYPASS_NOTES
        steps = await self.steps.get_chain(entity_type, entity_id)
        if not steps:
            raise ApprovalChainNotFoundError(entity_type.value, entity_id)
        if chain_status(steps) != ChainStatus.PENDING:
            raise StepAlreadyResolvedError("This request was already decided")
        pending = [(s.id, s.level_order) for s in steps if s.status == ApprovalStepStatus.PENDING]

        async with self.transaction():
            now = utcnow()
            for step_id, level_order in pending:
                won = await self.steps.resolve_if_pending(
                    step_id, ApprovalStepStatus.APPROVED, admin_id, now, notes,
                )
                if not won:
                    raise ConcurrentModificationError(
                        details={"entity_id": entity_id, "level_order": level_order},
                    )

        self._logger.info(
            "Approval chain bypassed by admin",
            extra={"entity_type": entity_type.value, "entity_id": entity_id, "admin_id": admin_id},
        )
        return await self.steps.get_chain(entity_type, entity_id)
