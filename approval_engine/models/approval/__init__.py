"""Approval workflow models."""

from .approval_step import ApprovalStep
from .approval_policy import ApprovalPolicy, ApprovalLevel
from .approver_delegation import ApproverDelegation

__all__ = ["ApprovalStep", "ApprovalPolicy", "ApprovalLevel", "ApproverDelegation"]
