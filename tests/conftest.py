# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from datetime import date, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, TypeVar

import pytest

# Keys must exist before settings are imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("WHATSAPP_ENCRYPTION_KEY", "test-action-token-signing-key")
os.environ.setdefault("CHANNEL_ENCRYPTION_KEY", "test-channel-encryption-key")
os.environ.setdefault("NEXTAUTH_SECRET", "test-session-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from approval_engine.db.init_db import init_db  # noqa: E402
from approval_engine.db.session import build_engine, build_session_factory  # noqa: E402
from approval_engine.models import (  # noqa: E402
    ApprovalLevel,
    ApprovalPolicy,
    LeaveRequest,
    Organization,
    SpendRequest,
    AssetRequest,
    TeamMember,
)
from approval_engine.models.base.enums import (  # noqa: E402
    ApprovalModule,
    ApprovalRole,
    WhatsAppSource,
)

T = TypeVar("T")

SessionFactory = async_sessionmaker[AsyncSession]


class Database:
    """
    Runs one test scenario against a fresh SQLite file.

    Every call to ``run`` gets its own event loop and engine; the schema is
    created up front and the engine disposed afterwards.
    """

    def __init__(self, url: str):
        self.url = url

    def run(self, scenario: Callable[[SessionFactory], Awaitable[T]]) -> T:
        async def main() -> T:
            engine = build_engine(self.url, echo=False)
            try:
                await init_db(engine)
                return await scenario(build_session_factory(engine))
            finally:
                await engine.dispose()

        return asyncio.run(main())


class Seeder:
    """Inserts the organisation, members and requests scenarios build on."""

    async def organization(
        self,
        session: AsyncSession,
        source: WhatsAppSource = WhatsAppSource.NONE,
        platform_enabled: bool = False,
    ) -> Organization:
        org = Organization(name="Acme Trading", whatsapp_source=source, whatsapp_platform_enabled=platform_enabled)
        session.add(org)
        await session.commit()
        return org

    async def member(self, session: AsyncSession, org: Organization, name: str, **fields) -> TeamMember:
        member = TeamMember(tenant_id=org.id, name=name, **fields)
        session.add(member)
        await session.commit()
        return member

    async def team(self, session: AsyncSession, org: Organization) -> dict:
        """
        A small org chart:

        director (admin) <- manager <- employee, plus an HR officer.
        """
        director = await self.member(session, org, "Dana Director", is_admin=True, qatar_mobile="55500001")
        manager = await self.member(
            session, org, "Mo Manager", reporting_to_id=director.id, qatar_mobile="55500002",
        )
        hr = await self.member(session, org, "Hana HR", has_hr_access=True, qatar_mobile="55500003")
        employee = await self.member(session, org, "Eli Employee", reporting_to_id=manager.id)
        return {"director": director, "manager": manager, "hr": hr, "employee": employee}

    async def leave_request(
        self,
        session: AsyncSession,
        org: Organization,
        member: TeamMember,
        days: str = "3",
        leave_type: str = "Annual Leave",
        reason: Optional[str] = "Family trip",
    ) -> LeaveRequest:
        start = date(2026, 11, 2)
        request = LeaveRequest(
            tenant_id=org.id,
            member_id=member.id,
            leave_type=leave_type,
            start_date=start,
            end_date=start + timedelta(days=int(Decimal(days)) - 1),
            total_days=Decimal(days),
            reason=reason,
        )
        session.add(request)
        await session.commit()
        return request

    async def spend_request(
        self,
        session: AsyncSession,
        org: Organization,
        member: TeamMember,
        amount: str = "1500.50",
        title: str = "Office chairs",
    ) -> SpendRequest:
        request = SpendRequest(
            tenant_id=org.id,
            requester_id=member.id,
            title=title,
            total_amount=Decimal(amount),
            currency="QAR",
        )
        session.add(request)
        await session.commit()
        return request

    async def asset_request(self, session: AsyncSession, org: Organization, member: TeamMember) -> AssetRequest:
        request = AssetRequest(
            tenant_id=org.id,
            member_id=member.id,
            asset_model="ThinkPad X1",
            asset_type="Laptop",
            asset_value=Decimal("6200"),
            reason="Replacement for broken laptop",
        )
        session.add(request)
        await session.commit()
        return request

    async def policy(
        self,
        session: AsyncSession,
        org: Organization,
        module: ApprovalModule,
        roles: List[ApprovalRole],
        priority: int = 0,
        **bounds,
    ) -> ApprovalPolicy:
        policy = ApprovalPolicy(
            tenant_id=org.id,
            name=f"{module.value} policy",
            module=module,
            priority=priority,
            levels=[
                ApprovalLevel(level_order=index, approver_role=role)
                for index, role in enumerate(roles, start=1)
            ],
            **bounds,
        )
        session.add(policy)
        await session.commit()
        return policy


@pytest.fixture
def db(tmp_path) -> Database:
    return Database(f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}")


@pytest.fixture
def seed() -> Seeder:
    return Seeder()


class WindowCounterRedis:
    """Answers the ``INCR``/``EXPIRE`` calls of the fixed window limiter."""

    def __init__(self):
        self.counters = {}
        self.expiries = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True


@pytest.fixture
def redis_client() -> WindowCounterRedis:
    return WindowCounterRedis()
