"""
Action Token Repository

Token lookup plus the ``WHERE used = false`` guarded consumption.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.base.enums import ApprovalModule
from approval_engine.models.whatsapp.action_token import ActionToken
from approval_engine.repositories.base.base_repository import BaseRepository


class ActionTokenRepository(BaseRepository[ActionToken]):
    """Persistence for signed action tokens."""

    def __init__(self, session: AsyncSession):
        super().__init__(ActionToken, session)

    async def get_by_token(self, token: str) -> Optional[ActionToken]:
        stmt = (
            select(ActionToken)
            .where(ActionToken.token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def consume_if_unused(self, token_pk: str, used_at: datetime) -> bool:
        """Atomically mark a token used. False when someone else got there first."""
        affected = await self.conditional_update(
            (ActionToken.id == token_pk, ActionToken.used.is_(False)),
            {"used": True, "used_at": used_at},
        )
        return affected == 1

    async def invalidate_for_entity(
        self,
        entity_type: ApprovalModule,
        entity_id: str,
        used_at: datetime,
    ) -> int:
        return await self.conditional_update(
            (
                ActionToken.entity_type == entity_type,
                ActionToken.entity_id == entity_id,
                ActionToken.used.is_(False),
            ),
            {"used": True, "used_at": used_at},
        )

    async def delete_stale(self, now: datetime, used_before: datetime) -> int:
        """Delete tokens past expiry and used tokens older than the retention cut-off."""
        return await self.delete_where((
            or_(
                ActionToken.expires_at < now,
                and_(ActionToken.used.is_(True), ActionToken.used_at < used_before),
            ),
        ))
