"""
WhatsApp configuration, phone registration and message log repositories.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.base.enums import MessageStatus
from approval_engine.models.whatsapp.message_log import WhatsAppMessageLog
from approval_engine.models.whatsapp.whatsapp_config import (
    PlatformWhatsAppConfig,
    WhatsAppConfig,
)
from approval_engine.models.whatsapp.whatsapp_user_phone import WhatsAppUserPhone
from approval_engine.repositories.base.base_repository import BaseRepository


class WhatsAppConfigRepository(BaseRepository[WhatsAppConfig]):
    """Tenant and platform WhatsApp account lookups."""

    def __init__(self, session: AsyncSession):
        super().__init__(WhatsAppConfig, session)

    async def get_for_tenant(self, tenant_id: str) -> Optional[WhatsAppConfig]:
        return await self.find_one_by_criteria({"tenant_id": tenant_id}, refresh=True)

    async def get_active_platform(self) -> Optional[PlatformWhatsAppConfig]:
        stmt = (
            select(PlatformWhatsAppConfig)
            .where(PlatformWhatsAppConfig.is_active.is_(True))
            .order_by(PlatformWhatsAppConfig.created_at)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_tenant_by_verify_token(self, verify_token: str) -> Optional[WhatsAppConfig]:
        return await self.find_one_by_criteria({
            "webhook_verify_token": verify_token,
            "is_active": True,
        }, refresh=True)


class WhatsAppUserPhoneRepository(BaseRepository[WhatsAppUserPhone]):
    """Member phone registrations."""

    def __init__(self, session: AsyncSession):
        super().__init__(WhatsAppUserPhone, session)

    async def get_by_member(self, member_id: str) -> Optional[WhatsAppUserPhone]:
        return await self.find_one_by_criteria({"member_id": member_id}, refresh=True)


class MessageLogRepository(BaseRepository[WhatsAppMessageLog]):
    """Outbound message log."""

    def __init__(self, session: AsyncSession):
        super().__init__(WhatsAppMessageLog, session)

    async def update_status(
        self,
        wa_message_id: str,
        status: MessageStatus,
        error_message: Optional[str] = None,
    ) -> int:
        values = {"status": status}
        if error_message is not None:
            values["error_message"] = error_message
        return await self.conditional_update(
            (WhatsAppMessageLog.wa_message_id == wa_message_id,),
            values,
        )
