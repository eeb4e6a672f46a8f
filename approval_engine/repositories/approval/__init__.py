from .approval_step_repository import ApprovalStepRepository
from .approval_policy_repository import ApprovalPolicyRepository, ApproverDelegationRepository

__all__ = [
    "ApprovalStepRepository",
    "ApprovalPolicyRepository",
    "ApproverDelegationRepository",
]
