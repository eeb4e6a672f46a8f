"""
Approval policy resolution.

``resolve_policy`` is a pure function from a request snapshot and tenant
policy configuration to the ordered roles that must approve it. Missing or
non-matching configuration fails closed with ``PolicyConfigurationError``.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import PolicyConfigurationError
from approval_engine.models.approval.approval_policy import ApprovalPolicy
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole
from approval_engine.repositories.approval.approval_policy_repository import ApprovalPolicyRepository
from approval_engine.schemas.approval.policy import EntitySnapshot, PolicyRule, TenantPolicyConfig
from approval_engine.services.base.base_service import BaseService

__all__ = [
    "resolve_policy",
    "policy_dimension",
    "PolicyResolverService",
]

# Which snapshot attribute each module is routed on.
_DIMENSIONS = {
    ApprovalModule.LEAVE_REQUEST: "days",
    ApprovalModule.SPEND_REQUEST: "amount",
    ApprovalModule.ASSET_REQUEST: "amount",
}


def policy_dimension(entity_type: ApprovalModule) -> str:
    try:
        return _DIMENSIONS[ApprovalModule(entity_type)]
    except (KeyError, ValueError):
        raise PolicyConfigurationError(
            f"No routing dimension defined for {entity_type}",
            entity_type=str(entity_type),
        )


def _bounds(rule: PolicyRule, dimension: str) -> Tuple[Optional[Decimal], Optional[Decimal]]:
    if dimension == "days":
        return rule.min_days, rule.max_days
    return rule.min_amount, rule.max_amount


def _in_range(value: Decimal, low: Optional[Decimal], high: Optional[Decimal]) -> bool:
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def resolve_policy(
    entity_type: ApprovalModule,
    entity_snapshot: EntitySnapshot,
    tenant_config: Optional[TenantPolicyConfig],
) -> List[ApprovalRole]:
    """
    Determine the ordered approval roles for a request.

    Rules are considered category-specific first, then by priority
    (highest first), then in declaration order. Bounds are inclusive and
    an unset bound is open.

    Args:
        entity_type: Module of the request
        entity_snapshot: Routing attributes of the request
        tenant_config: The tenant's policy configuration

    Returns:
        Ordered roles; an empty list means no approval is required

    Raises:
        PolicyConfigurationError: When no rule can be applied
    """
    dimension = policy_dimension(entity_type)
    module = ApprovalModule(entity_type)

    if tenant_config is None:
        raise PolicyConfigurationError(
            "Tenant approval policy configuration is missing",
            entity_type=module.value,
        )

    rules = tenant_config.rules_for(module)
    if not rules:
        raise PolicyConfigurationError(
            f"No approval policy configured for {module.value}",
            entity_type=module.value,
        )

    value = getattr(entity_snapshot, dimension)
    if value is None:
        raise PolicyConfigurationError(
            f"Request is missing '{dimension}' required for routing",
            entity_type=module.value,
            dimension=dimension,
        )

    category = entity_snapshot.category
    candidates = [
        (index, rule) for index, rule in enumerate(rules)
        if rule.category is None or rule.category == category
    ]
    candidates.sort(key=lambda item: (item[1].category is None, -item[1].priority, item[0]))

    for _, rule in candidates:
        low, high = _bounds(rule, dimension)
        if _in_range(value, low, high):
            return list(rule.roles)

    raise PolicyConfigurationError(
        f"No approval policy matches {dimension}={value} for {module.value}",
        entity_type=module.value,
        dimension=dimension,
        details={"value": str(value), "category": category},
    )


def policy_to_rule(policy: ApprovalPolicy) -> PolicyRule:
    """Map a stored policy and its levels onto a ``PolicyRule``."""
    levels = sorted(policy.levels, key=lambda level: level.level_order)
    return PolicyRule(
        name=policy.name,
        category=policy.category,
        min_amount=policy.min_amount,
        max_amount=policy.max_amount,
        min_days=Decimal(policy.min_days) if policy.min_days is not None else None,
        max_days=Decimal(policy.max_days) if policy.max_days is not None else None,
        priority=policy.priority,
        roles=[level.approver_role for level in levels],
    )


class PolicyResolverService(BaseService):
    """Loads tenant policies from storage and resolves them."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.policies = ApprovalPolicyRepository(session)

    async def load_config(self, tenant_id: str, entity_type: ApprovalModule) -> TenantPolicyConfig:
        stored = await self.policies.find_active_for_module(tenant_id, entity_type)
        return TenantPolicyConfig(
            tenant_id=tenant_id,
            policies={ApprovalModule(entity_type): [policy_to_rule(p) for p in stored]},
        )

    async def resolve_for_tenant(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_snapshot: EntitySnapshot,
    ) -> List[ApprovalRole]:
        config = await self.load_config(tenant_id, entity_type)
        roles = resolve_policy(entity_type, entity_snapshot, config)
        self._logger.info(
            "Resolved approval policy",
            extra={
                "tenant_id": tenant_id,
                "entity_type": ApprovalModule(entity_type).value,
                "roles": [role.value for role in roles],
            },
        )
        return roles
