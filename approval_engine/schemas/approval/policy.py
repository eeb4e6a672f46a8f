"""
Approval policy schemas.

In-memory policy configuration consumed by the pure policy resolver.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from approval_engine.models.base.enums import ApprovalModule, ApprovalRole
from approval_engine.schemas.common.base import BaseSchema

__all__ = [
    "EntitySnapshot",
    "PolicyRule",
    "TenantPolicyConfig",
]


class EntitySnapshot(BaseSchema):
    """Request attributes relevant to routing."""

    days: Optional[Decimal] = Field(default=None, ge=0, description="Leave duration in days")
    amount: Optional[Decimal] = Field(default=None, ge=0, description="Spend or asset value")
    category: Optional[str] = Field(default=None, description="Leave type or spend category")


class PolicyRule(BaseSchema):
    """One threshold band and the ordered roles it requires."""

    name: Optional[str] = None
    category: Optional[str] = Field(
        default=None,
        description="Only applies to snapshots of this category when set",
    )
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    min_days: Optional[Decimal] = None
    max_days: Optional[Decimal] = None
    priority: int = 0
    roles: List[ApprovalRole] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> "PolicyRule":
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError("min_amount must not exceed max_amount")
        if (
            self.min_days is not None
            and self.max_days is not None
            and self.min_days > self.max_days
        ):
            raise ValueError("min_days must not exceed max_days")
        return self


class TenantPolicyConfig(BaseSchema):
    """All policy rules of one tenant keyed by module."""

    tenant_id: Optional[str] = None
    policies: Dict[ApprovalModule, List[PolicyRule]] = Field(default_factory=dict)

    def rules_for(self, module: ApprovalModule) -> List[PolicyRule]:
        return list(self.policies.get(module, []))
