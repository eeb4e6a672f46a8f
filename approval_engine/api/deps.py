"""
Shared FastAPI dependencies.

Example usage in a router:
    from fastapi import Depends, APIRouter
    from approval_engine.api import deps

    @router.get("/chain")
    async def read_chain(processor = Depends(deps.get_approval_processor)):
        ...
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.config.settings import settings
from approval_engine.core.rate_limiting import FixedWindowLimiter, create_redis_client
from approval_engine.db.session import get_session
from approval_engine.services.approval.approval_chain_engine import ApprovalChainEngine
from approval_engine.services.approval.approval_processor import ApprovalProcessor
from approval_engine.services.base.service_result import ErrorCode, ServiceResult
from approval_engine.services.notification.notification_dispatcher import NotificationDispatcher
from approval_engine.services.whatsapp.action_token_service import ActionTokenService
from approval_engine.services.whatsapp.webhook_handler import WhatsAppWebhookHandler

redis_client = create_redis_client()
webhook_limiter = FixedWindowLimiter(
    redis_client,
    settings.WEBHOOK_RATE_LIMIT,
    settings.WEBHOOK_RATE_PERIOD_SECONDS,
)
notification_dispatcher = NotificationDispatcher()

_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
}


get_db = get_session


def get_chain_engine(session: AsyncSession = Depends(get_db)) -> ApprovalChainEngine:
    return ApprovalChainEngine(session)


def get_approval_processor(session: AsyncSession = Depends(get_db)) -> ApprovalProcessor:
    return ApprovalProcessor(session, dispatcher=notification_dispatcher)


def get_webhook_handler(session: AsyncSession = Depends(get_db)) -> WhatsAppWebhookHandler:
    return WhatsAppWebhookHandler(
        session,
        processor=ApprovalProcessor(session, dispatcher=notification_dispatcher),
    )


def get_webhook_limiter() -> FixedWindowLimiter:
    return webhook_limiter


def get_action_token_service(session: AsyncSession = Depends(get_db)) -> ActionTokenService:
    return ActionTokenService(session)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Accept scheduler calls carrying ``Authorization: Bearer <CRON_SECRET>``."""
    if not settings.CRON_SECRET:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="CRON_SECRET not configured")
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def unwrap_result(result: ServiceResult):
    """Return the result data or raise the matching HTTP error."""
    if result.is_success:
        return result.data
    code = result.error_code
    raise HTTPException(
        status_code=_STATUS_BY_CODE.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=result.error.to_dict() if result.error else result.message,
    )
