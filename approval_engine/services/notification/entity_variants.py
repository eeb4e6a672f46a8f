"""
Approvable entity variants.

The set of approvable entity types is closed. Each variant knows how to load
its request, extract routing attributes, render template details and
finalize the request status; everything else in the engine is generic.
"""

from decimal import Decimal
from typing import Callable, Dict, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.base.enums import ApprovalModule, RequestStatus
from approval_engine.models.requests import AssetRequest, LeaveRequest, SpendRequest
from approval_engine.repositories.base.base_repository import BaseRepository
from approval_engine.schemas.approval.policy import EntitySnapshot
from approval_engine.schemas.whatsapp.messages import ApprovalDetails, TemplateMessage
from approval_engine.services.notification.templates import (
    build_asset_approval_template,
    build_leave_approval_template,
    build_purchase_approval_template,
)

__all__ = [
    "EntityVariant",
    "LeaveRequestVariant",
    "SpendRequestVariant",
    "AssetRequestVariant",
    "get_variant",
]


class EntityVariant:
    """Behaviour shared by every approvable request type."""

    entity_type: ApprovalModule
    model: Type
    label: str
    requester_attr: str = "member_id"
    template_builder: Callable[..., TemplateMessage]

    async def load(self, session: AsyncSession, entity_id: str):
        return await BaseRepository(self.model, session).find_one_by_criteria({"id": entity_id}, refresh=True)

    async def get_requester_id(self, session: AsyncSession, entity_id: str) -> Optional[str]:
        entity = await self.load(session, entity_id)
        if entity is None:
            return None
        return getattr(entity, self.requester_attr)

    async def fetch_details(self, session: AsyncSession, entity_id: str) -> Optional[ApprovalDetails]:
        """Template details for the request, or None if it no longer exists."""
        entity = await self.load(session, entity_id)
        if entity is None:
            return None
        return self.details_from(entity)

    def details_from(self, entity) -> ApprovalDetails:
        raise NotImplementedError

    def snapshot(self, entity) -> EntitySnapshot:
        raise NotImplementedError

    def template_for(
        self,
        to: str,
        details: ApprovalDetails,
        approve_token: str,
        reject_token: str,
    ) -> TemplateMessage:
        return self.template_builder(to, details, approve_token, reject_token)

    async def set_status(
        self,
        session: AsyncSession,
        entity_id: str,
        status: RequestStatus,
    ) -> bool:
        """Move the request out of PENDING; False if it already left it."""
        affected = await BaseRepository(self.model, session).conditional_update(
            (self.model.id == entity_id, self.model.status == RequestStatus.PENDING),
            {"status": status},
        )
        return affected == 1

    @staticmethod
    def _requester_name(member) -> str:
        if member is not None and member.name:
            return member.name
        return "Employee"


class LeaveRequestVariant(EntityVariant):
    entity_type = ApprovalModule.LEAVE_REQUEST
    model = LeaveRequest
    label = "Leave Request"
    template_builder = staticmethod(build_leave_approval_template)

    def details_from(self, entity: LeaveRequest) -> ApprovalDetails:
        return ApprovalDetails(
            requester_name=self._requester_name(entity.member),
            requester_id=entity.member_id,
            leave_type=entity.leave_type,
            start_date=entity.start_date,
            end_date=entity.end_date,
            total_days=entity.total_days,
            reason=entity.reason,
        )

    def snapshot(self, entity: LeaveRequest) -> EntitySnapshot:
        days = Decimal(str(entity.total_days)) if entity.total_days is not None else None
        return EntitySnapshot(days=days, category=entity.leave_type)


class SpendRequestVariant(EntityVariant):
    entity_type = ApprovalModule.SPEND_REQUEST
    model = SpendRequest
    label = "Spend Request"
    requester_attr = "requester_id"
    template_builder = staticmethod(build_purchase_approval_template)

    def details_from(self, entity: SpendRequest) -> ApprovalDetails:
        return ApprovalDetails(
            requester_name=self._requester_name(entity.requester),
            requester_id=entity.requester_id,
            title=entity.title,
            total_amount=entity.total_amount,
            currency=entity.currency,
        )

    def snapshot(self, entity: SpendRequest) -> EntitySnapshot:
        return EntitySnapshot(amount=entity.total_amount, category=entity.category)


class AssetRequestVariant(EntityVariant):
    entity_type = ApprovalModule.ASSET_REQUEST
    model = AssetRequest
    label = "Asset Request"
    template_builder = staticmethod(build_asset_approval_template)

    def details_from(self, entity: AssetRequest) -> ApprovalDetails:
        return ApprovalDetails(
            requester_name=self._requester_name(entity.member),
            requester_id=entity.member_id,
            asset_name=entity.asset_model or "Asset",
            asset_type=entity.asset_type or "Equipment",
            justification=entity.reason,
        )

    def snapshot(self, entity: AssetRequest) -> EntitySnapshot:
        return EntitySnapshot(amount=entity.asset_value, category=entity.asset_type)


_VARIANTS: Dict[ApprovalModule, EntityVariant] = {
    variant.entity_type: variant
    for variant in (LeaveRequestVariant(), SpendRequestVariant(), AssetRequestVariant())
}


def get_variant(entity_type: ApprovalModule) -> EntityVariant:
    """
    Variant for an entity type.

    Raises:
        ValueError: For an unknown entity type
    """
    try:
        return _VARIANTS[ApprovalModule(entity_type)]
    except ValueError:
        raise ValueError(f"Unknown entity type: {entity_type}")
