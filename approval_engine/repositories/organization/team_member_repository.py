"""
Team member and organization repositories.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.models.organization.organization import Organization
from approval_engine.models.organization.team_member import TeamMember
from approval_engine.repositories.base.base_repository import BaseRepository


class TeamMemberRepository(BaseRepository[TeamMember]):
    """Lookups used to map approval roles onto members."""

    def __init__(self, session: AsyncSession):
        super().__init__(TeamMember, session)

    async def get_reporting_to_id(self, member_id: str) -> Optional[str]:
        stmt = select(TeamMember.reporting_to_id).where(TeamMember.id == member_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_ids_with_flag(self, tenant_id: str, flag: str) -> List[str]:
        """Ids of active members in a tenant whose boolean ``flag`` is set."""
        column = getattr(TeamMember, flag)
        stmt = (
            select(TeamMember.id)
            .where(
                TeamMember.tenant_id == tenant_id,
                column.is_(True),
                TeamMember.is_deleted.is_(False),
            )
            .order_by(TeamMember.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class OrganizationRepository(BaseRepository[Organization]):
    """Tenant records."""

    def __init__(self, session: AsyncSession):
        super().__init__(Organization, session)
