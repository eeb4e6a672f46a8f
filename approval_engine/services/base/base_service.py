"""
Base service class providing common functionality for all services.
"""

from typing import Optional, Dict, Any
from abc import ABC
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.exceptions import BaseAppException
from approval_engine.core.logging import get_logger
from approval_engine.services.base.service_result import (
    ServiceResult,
    ErrorSeverity,
)


class BaseService(ABC):
    """
    Base service with common behaviors:
    - Shared logger and db session
    - Consistent error handling via ServiceResult
    - Transaction management
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize base service.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with logging.

        Application exceptions are expected outcomes and keep their message;
        anything else is logged with a traceback.
        """
        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)

        if isinstance(exception, BaseAppException):
            self._logger.warning(
                f"{operation} rejected: {exception.message}",
                extra={**context, "error_code": exception.error_code.value},
            )
            return ServiceResult.from_app_exception(exception)

        self._logger.error(
            f"Error during {operation}: {exception}",
            exc_info=True,
            extra=context,
        )
        return ServiceResult.from_exception(exception, operation, ErrorSeverity.CRITICAL)

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self):
        """
        Commit on success, roll back and re-raise on any error.

        Usage:
            async with self.transaction():
                ...
        """
        try:
            yield self.session
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
