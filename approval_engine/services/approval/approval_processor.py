"""
Request-level approval processing.

Ties the chain engine to the request lifecycle: starting a chain from
policy, checking who may act, finalizing the request when the chain
resolves, retiring outstanding action tokens and scheduling the next
notification round.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import (
    ApprovalChainNotFoundError,
    ApproverNotAuthorizedError,
    EntityNotFoundError,
    StepAlreadyResolvedError,
)
from approval_engine.models.base.enums import (
    ApprovalAction,
    ApprovalModule,
    ChainStatus,
    RequestStatus,
)
from approval_engine.schemas.approval.approval import (
    ApprovalProcessingResult,
    CancelChainResponse,
)
from approval_engine.services.approval.approval_chain_engine import (
    ApprovalChainEngine,
    chain_status,
    compute_summary,
    current_step,
)
from approval_engine.services.approval.approver_resolver import ApproverResolver
from approval_engine.services.approval.policy_resolver import PolicyResolverService
from approval_engine.services.base.base_service import BaseService
from approval_engine.services.base.service_result import ServiceResult
from approval_engine.services.notification.entity_variants import get_variant
from approval_engine.services.notification.notification_dispatcher import NotificationDispatcher
from approval_engine.services.whatsapp.action_token_service import ActionTokenService

__all__ = ["ApprovalProcessor"]

_PAST_TENSE = {
    ApprovalAction.APPROVE: "approved",
    ApprovalAction.REJECT: "rejected",
}

_FINAL_STATUS = {
    ChainStatus.APPROVED: RequestStatus.APPROVED,
    ChainStatus.REJECTED: RequestStatus.REJECTED,
}


class ApprovalProcessor(BaseService):
    """
    Approval workflow entry points used by the API and the webhook.

    All public methods return a ``ServiceResult``; rule violations become
    failures carrying the specific reason.
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        token_service: Optional[ActionTokenService] = None,
        notify: bool = True,
    ):
        super().__init__(session)
        self.approvers = ApproverResolver(session)
        self.engine = ApprovalChainEngine(session, approvers=self.approvers)
        self.policies = PolicyResolverService(session)
        self.tokens = token_service or ActionTokenService(session)
        self.notify = notify
        self.dispatcher = dispatcher if dispatcher is not None else (NotificationDispatcher() if notify else None)

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    async def start_approval(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
    ) -> ServiceResult[ApprovalProcessingResult]:
        """
        Resolve policy for a new request and open its chain.

        An empty policy result approves the request immediately.
        """
        try:
            variant = get_variant(entity_type)
            entity = await variant.load(self.session, entity_id)
            if entity is None:
                raise EntityNotFoundError(f"{variant.label} {entity_id} not found", {"id": entity_id})

            roles = await self.policies.resolve_for_tenant(tenant_id, variant.entity_type, variant.snapshot(entity))

            if not roles:
                async with self.transaction():
                    await variant.set_status(self.session, entity_id, RequestStatus.APPROVED)
                self._logger.info(
                    "Request auto-approved, no approval required",
                    extra={"entity_type": variant.entity_type.value, "entity_id": entity_id},
                )
                return ServiceResult.success(
                    ApprovalProcessingResult(
                        chain_exists=False,
                        is_chain_complete=True,
                        auto_approved=True,
                        chain_status=ChainStatus.APPROVED,
                    ),
                    message="Request auto-approved",
                )

            steps = await self.engine.initialize_chain(variant.entity_type, entity_id, roles, tenant_id)
            if self.notify and self.dispatcher is not None:
                self.dispatcher.dispatch_for_step(
                    tenant_id,
                    variant.entity_type,
                    entity_id,
                    steps[0].required_role,
                    getattr(entity, variant.requester_attr),
                )
            return ServiceResult.success(
                ApprovalProcessingResult(
                    chain_exists=True,
                    is_chain_complete=False,
                    chain_status=chain_status(steps),
                    summary=compute_summary(steps),
                ),
                message="Approval chain started",
            )
        except Exception as e:
            return self._handle_exception(e, "start approval", entity_id)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def process_action(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        approver_id: str,
        action: ApprovalAction,
        level_order: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> ServiceResult[ApprovalProcessingResult]:
        """
        Record an approver's decision.

        ``level_order`` defaults to the current step; a higher level is an
        override and needs ``notes``. Entities without a chain succeed with
        ``chain_exists`` false so callers can fall back to single-step
        handling.
        """
        try:
            variant = get_variant(entity_type)
            steps = await self.engine.get_chain(variant.entity_type, entity_id)
            if not steps:
                return ServiceResult.success(
                    ApprovalProcessingResult(chain_exists=False, is_chain_complete=True),
                )

            current = current_step(steps)
            if current is None or chain_status(steps) == ChainStatus.REJECTED:
                raise StepAlreadyResolvedError(level_order=level_order)

            requester_id = await variant.get_requester_id(self.session, entity_id)

            target_level = level_order or current.level_order
            target = next((s for s in steps if s.level_order == target_level), None)
            if target is not None:
                eligibility = await self.approvers.can_member_approve(approver_id, target, requester_id)
                if not eligibility.can_approve:
                    raise ApproverNotAuthorizedError(
                        eligibility.reason or "Not authorized to approve",
                        details={"level_order": target_level},
                    )

            outcome = await self.engine.record_action(
                variant.entity_type, entity_id, approver_id, target_level, action, notes,
            )

            if outcome.is_chain_complete:
                async with self.transaction():
                    await variant.set_status(self.session, entity_id, _FINAL_STATUS[outcome.chain_status])
            await self.tokens.invalidate_for_entity(variant.entity_type, entity_id)

            if outcome.next_step is not None and self.notify and self.dispatcher is not None:
                self.dispatcher.dispatch_next_level(
                    target.tenant_id,
                    variant.entity_type,
                    entity_id,
                    outcome.next_step.required_role,
                    requester_id,
                )

            steps = await self.engine.get_chain(variant.entity_type, entity_id)
            return ServiceResult.success(
                ApprovalProcessingResult(
                    chain_exists=True,
                    is_chain_complete=outcome.is_chain_complete,
                    step_processed=True,
                    chain_status=outcome.chain_status,
                    outcome=outcome,
                    summary=compute_summary(steps),
                ),
                message=f"{variant.label} {_PAST_TENSE[ApprovalAction(action)]}",
            )
        except Exception as e:
            return self._handle_exception(e, "process approval action", entity_id, {"approver_id": approver_id})

    async def cancel(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
    ) -> ServiceResult[CancelChainResponse]:
        """Withdraw a request: skip its pending steps and retire its tokens."""
        try:
            variant = get_variant(entity_type)
            skipped = await self.engine.cancel_chain(variant.entity_type, entity_id)
            await self.tokens.invalidate_for_entity(variant.entity_type, entity_id)
            async with self.transaction():
                await variant.set_status(self.session, entity_id, RequestStatus.CANCELLED)
            return ServiceResult.success(
                CancelChainResponse(entity_type=variant.entity_type, entity_id=entity_id, skipped_steps=skipped),
            )
        except Exception as e:
            return self._handle_exception(e, "cancel approval chain", entity_id)

    async def bypass(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        admin_id: str,
        notes: Optional[str] = None,
    ) -> ServiceResult[ApprovalProcessingResult]:
        """Admin approval of every remaining level at once."""
        try:
            variant = get_variant(entity_type)
            admin = await self.approvers.members.find_by_id(admin_id)
            if admin is None or not admin.is_admin:
                raise ApproverNotAuthorizedError("Only admins can bypass an approval chain")
            if not await self.engine.has_chain(variant.entity_type, entity_id):
                raise ApprovalChainNotFoundError(variant.entity_type.value, entity_id)

            steps = await self.engine.admin_bypass(variant.entity_type, entity_id, admin_id, notes)
            async with self.transaction():
                await variant.set_status(self.session, entity_id, RequestStatus.APPROVED)
            await self.tokens.invalidate_for_entity(variant.entity_type, entity_id)
            return ServiceResult.success(
                ApprovalProcessingResult(
                    chain_exists=True,
                    is_chain_complete=True,
                    step_processed=True,
                    chain_status=chain_status(steps),
                    summary=compute_summary(steps),
                ),
            )
        except Exception as e:
            return self._handle_exception(e, "bypass approval chain", entity_id, {"admin_id": admin_id})
