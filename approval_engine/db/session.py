"""Database session management."""
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from approval_engine.config.settings import settings


def build_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Create an async engine; defaults come from settings."""
    kwargs.setdefault("echo", settings.DB_ECHO)
    kwargs.setdefault("pool_pre_ping", settings.DB_POOL_PRE_PING)
    return create_async_engine(database_url or settings.DATABASE_URL, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = build_engine()

# Create session factory
async_session_factory = build_session_factory(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Dependency function that yields a database session.

    Usage in FastAPI endpoints:
        @router.get("/items/")
        async def read_items(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with async_session_factory() as session:
        yield session
