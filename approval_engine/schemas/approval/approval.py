"""
Approval chain schemas: step views, summary, action input and outcome.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from approval_engine.models.base.enums import (
    ApprovalAction,
    ApprovalModule,
    ApprovalRole,
    ApprovalStepStatus,
    ChainStatus,
)
from approval_engine.schemas.common.base import BaseSchema

__all__ = [
    "ApprovalStepResponse",
    "ApprovalSummary",
    "ActionOutcome",
    "ApproverEligibility",
    "RecordActionRequest",
    "CancelChainResponse",
    "ApprovalChainResponse",
    "ApprovalProcessingResult",
]


class ApprovalStepResponse(BaseSchema):
    id: str
    entity_type: ApprovalModule
    entity_id: str
    level_order: int
    required_role: ApprovalRole
    status: ApprovalStepStatus
    approver_id: Optional[str] = None
    action_at: Optional[datetime] = None
    notes: Optional[str] = None


class ApprovalSummary(BaseSchema):
    """Derived view of a chain; never persisted."""

    total_steps: int = 0
    completed_steps: int = Field(default=0, description="APPROVED + REJECTED + SKIPPED")
    current_step: Optional[int] = Field(default=None, description="Level of the lowest PENDING step")
    current_role: Optional[ApprovalRole] = None
    status: ChainStatus = ChainStatus.NOT_STARTED
    can_current_user_approve: bool = False


class ActionOutcome(BaseSchema):
    """Result of a recorded approve/reject action."""

    entity_type: ApprovalModule
    entity_id: str
    action: ApprovalAction
    acted_level: int
    chain_status: ChainStatus
    is_chain_complete: bool
    is_override: bool = False
    skipped_levels: List[int] = Field(default_factory=list)
    next_step: Optional[ApprovalStepResponse] = None
    steps: List[ApprovalStepResponse] = Field(default_factory=list)


class ApproverEligibility(BaseSchema):
    can_approve: bool
    reason: Optional[str] = None
    via_delegation: bool = False


class RecordActionRequest(BaseSchema):
    """Body of the approve/reject endpoint."""

    approver_id: str = Field(..., min_length=1)
    level_order: Optional[int] = Field(
        default=None,
        ge=1,
        description="Level to act on; defaults to the current step",
    )
    action: ApprovalAction
    notes: Optional[str] = Field(default=None, max_length=2000)


class CancelChainResponse(BaseSchema):
    entity_type: ApprovalModule
    entity_id: str
    skipped_steps: int


class ApprovalChainResponse(BaseSchema):
    steps: List[ApprovalStepResponse]
    summary: ApprovalSummary


class ApprovalProcessingResult(BaseSchema):
    """Outcome of starting a chain or processing an action on it."""

    chain_exists: bool
    is_chain_complete: bool
    step_processed: bool = False
    auto_approved: bool = False
    chain_status: ChainStatus = ChainStatus.NOT_STARTED
    outcome: Optional[ActionOutcome] = None
    summary: Optional[ApprovalSummary] = None
