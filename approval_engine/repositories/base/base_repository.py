"""
Base repository with standardized async CRUD operations, transaction
management, and error handling.

Mutations that must be race-safe go through ``conditional_update``, which
returns the affected row count so callers can implement compare-and-set
semantics without row locks.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import (
    EntityAlreadyExistsError,
    EntityNotFoundError,
    RepositoryError,
)
from approval_engine.core.logging import get_logger
from approval_engine.models.base import BaseModel, SoftDeleteModel

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with standardized operations.

    Repositories never commit on their own; the owning service decides
    transaction boundaries through ``transaction()``.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session
        self._is_soft_delete = issubclass(model, SoftDeleteModel)

    # ==================== Transaction Management ====================

    @asynccontextmanager
    async def transaction(self):
        """
        Transaction context manager with automatic rollback.

        Usage:
            async with repository.transaction():
                await repository.create(entity)
        """
        try:
            yield self.session
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Transaction rollback", extra={'error_message': str(e)}, exc_info=True)
            raise RepositoryError(f"Transaction failed: {str(e)}") from e
        except Exception:
            await self.session.rollback()
            raise

    async def flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise EntityAlreadyExistsError(
                f"{self.model.__name__} already exists",
                {"reason": str(e.orig)}
            ) from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Flush failed: {str(e)}") from e

    # ==================== Create Operations ====================

    async def create(self, entity: ModelType) -> ModelType:
        """
        Add a new entity and flush it.

        Raises:
            EntityAlreadyExistsError: If a unique constraint is violated
        """
        self.session.add(entity)
        await self.flush()
        logger.debug("Created entity", extra={'model': self.model.__name__, 'entity_id': entity.id})
        return entity

    async def create_many(self, entities: Sequence[ModelType]) -> List[ModelType]:
        """
        Add several entities in one flush, all or nothing.

        Returns:
            The created entities in input order
        """
        self.session.add_all(list(entities))
        await self.flush()
        logger.debug("Bulk created entities", extra={'model': self.model.__name__, 'count': len(entities)})
        return list(entities)

    # ==================== Read Operations ====================

    async def find_by_id(self, id: str, include_deleted: bool = False) -> Optional[ModelType]:
        """
        Find entity by ID.

        Args:
            id: Entity ID
            include_deleted: Include soft-deleted entities

        Returns:
            Entity or None
        """
        try:
            stmt = select(self.model).where(self.model.id == id)
            if self._is_soft_delete and not include_deleted:
                stmt = stmt.where(self.model.is_deleted.is_(False))
            result = await self.session.execute(stmt)
            return result.unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Find by ID failed: {str(e)}") from e

    async def get_by_id(self, id: str, include_deleted: bool = False) -> ModelType:
        """
        Get entity by ID or raise exception.

        Raises:
            EntityNotFoundError: If entity not found
        """
        entity = await self.find_by_id(id, include_deleted)
        if entity is None:
            raise EntityNotFoundError(
                f"{self.model.__name__} with id {id} not found",
                {"id": id}
            )
        return entity

    async def find_by_criteria(
        self,
        criteria: Dict[str, Any],
        order_by: Optional[List[str]] = None,
        include_deleted: bool = False,
        refresh: bool = False,
    ) -> List[ModelType]:
        """
        Find entities matching criteria.

        Args:
            criteria: Filter criteria as key-value pairs; list values use IN
            order_by: Fields to order by (prefix with - for desc)
            include_deleted: Include soft-deleted entities
            refresh: Overwrite identity-map state with the row as stored
        """
        try:
            stmt = select(self.model)
            if refresh:
                stmt = stmt.execution_options(populate_existing=True)
            for key, value in criteria.items():
                column = getattr(self.model, key)
                if isinstance(value, (list, tuple, set)):
                    stmt = stmt.where(column.in_(list(value)))
                else:
                    stmt = stmt.where(column == value)

            if self._is_soft_delete and not include_deleted:
                stmt = stmt.where(self.model.is_deleted.is_(False))

            for field in order_by or []:
                if field.startswith('-'):
                    stmt = stmt.order_by(getattr(self.model, field[1:]).desc())
                else:
                    stmt = stmt.order_by(getattr(self.model, field))

            result = await self.session.execute(stmt)
            return list(result.unique().scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Find by criteria failed: {str(e)}") from e

    async def find_one_by_criteria(
        self,
        criteria: Dict[str, Any],
        include_deleted: bool = False,
        refresh: bool = False,
    ) -> Optional[ModelType]:
        results = await self.find_by_criteria(criteria, include_deleted=include_deleted, refresh=refresh)
        return results[0] if results else None

    # ==================== Update Operations ====================

    async def conditional_update(self, where: Sequence[Any], values: Dict[str, Any]) -> int:
        """
        ``UPDATE ... WHERE <where>`` returning the affected row count.

        The in-memory identity map is not synchronized; callers re-read
        rows they need afterwards.
        """
        try:
            stmt = (
                update(self.model)
                .where(*where)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Conditional update failed: {str(e)}") from e

    # ==================== Delete Operations ====================

    async def delete_where(self, where: Sequence[Any]) -> int:
        """Hard delete matching rows, returning the count."""
        try:
            stmt = (
                delete(self.model)
                .where(*where)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise RepositoryError(f"Delete failed: {str(e)}") from e


__all__ = ["BaseRepository", "ModelType"]
