from .approval import (
    ActionOutcome,
    ApprovalChainResponse,
    ApprovalProcessingResult,
    ApprovalStepResponse,
    ApprovalSummary,
    ApproverEligibility,
    CancelChainResponse,
    RecordActionRequest,
)
from .policy import EntitySnapshot, PolicyRule, TenantPolicyConfig

__all__ = [
    "ActionOutcome",
    "ApprovalChainResponse",
    "ApprovalProcessingResult",
    "ApprovalStepResponse",
    "ApprovalSummary",
    "ApproverEligibility",
    "CancelChainResponse",
    "RecordActionRequest",
    "EntitySnapshot",
    "PolicyRule",
    "TenantPolicyConfig",
]
