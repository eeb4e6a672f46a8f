"""
Approval chain endpoints.

Authentication is owned by the host application; the acting member is
taken from the request body.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from approval_engine.api.deps import get_approval_processor, get_chain_engine, unwrap_result
from approval_engine.core.exceptions import ApprovalChainNotFoundError
from approval_engine.core.logging import get_logger
from approval_engine.models.base.enums import ApprovalModule
from approval_engine.schemas.approval.approval import (
    ApprovalChainResponse,
    ApprovalProcessingResult,
    ApprovalStepResponse,
    CancelChainResponse,
    RecordActionRequest,
)
from approval_engine.services.approval.approval_chain_engine import ApprovalChainEngine
from approval_engine.services.approval.approval_processor import ApprovalProcessor

logger = get_logger(__name__)

router = APIRouter(prefix="/approvals", tags=["Approvals"])


@router.get("/{entity_type}/{entity_id}", response_model=ApprovalChainResponse)
async def get_approval_chain(
    entity_type: ApprovalModule,
    entity_id: str,
    member_id: Optional[str] = Query(default=None, description="Resolve whether this member can act now"),
    engine: ApprovalChainEngine = Depends(get_chain_engine),
) -> ApprovalChainResponse:
    steps = await engine.get_chain(entity_type, entity_id)
    if not steps:
        raise ApprovalChainNotFoundError(entity_type.value, entity_id)
    summary = await engine.get_summary(entity_type, entity_id, asking_member_id=member_id)
    return ApprovalChainResponse(
        steps=[ApprovalStepResponse.model_validate(s) for s in steps],
        summary=summary,
    )


@router.post("/{entity_type}/{entity_id}/actions", response_model=ApprovalProcessingResult)
async def record_approval_action(
    entity_type: ApprovalModule,
    entity_id: str,
    body: RecordActionRequest,
    processor: ApprovalProcessor = Depends(get_approval_processor),
) -> ApprovalProcessingResult:
    result = await processor.process_action(
        entity_type,
        entity_id,
        body.approver_id,
        body.action,
        level_order=body.level_order,
        notes=body.notes,
    )
    logger.info(
        "Approval action handled",
        extra={"entity_id": entity_id, "approver_id": body.approver_id, "success": result.is_success},
    )
    return unwrap_result(result)


@router.post("/{entity_type}/{entity_id}/cancel", response_model=CancelChainResponse)
async def cancel_approval_chain(
    entity_type: ApprovalModule,
    entity_id: str,
    processor: ApprovalProcessor = Depends(get_approval_processor),
) -> CancelChainResponse:
    return unwrap_result(await processor.cancel(entity_type, entity_id))
