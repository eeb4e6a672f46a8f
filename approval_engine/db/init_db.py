"""Database initialization utilities."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from approval_engine.core.logging import get_logger
from approval_engine.db.session import engine as default_engine
from approval_engine.models import Base

logger = get_logger(__name__)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables that do not exist yet.

    Note: This is suitable for development/testing only.
    """
    bind = bind or default_engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured", extra={'table_count': len(Base.metadata.tables)})
    except Exception as e:
        logger.error("Error initializing database", extra={'error_message': str(e)})
        raise
