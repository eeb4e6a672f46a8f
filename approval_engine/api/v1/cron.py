"""
Scheduled maintenance endpoints.

Called by an external scheduler (daily) with the shared ``CRON_SECRET``.
"""

from fastapi import APIRouter, Depends

from approval_engine.api.deps import get_action_token_service, verify_cron_secret
from approval_engine.core.logging import get_logger
from approval_engine.schemas.whatsapp.tokens import TokenCleanupResponse
from approval_engine.services.whatsapp.action_token_service import ActionTokenService

logger = get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("/cleanup-action-tokens", response_model=TokenCleanupResponse)
async def cleanup_action_tokens(
    tokens: ActionTokenService = Depends(get_action_token_service),
) -> TokenCleanupResponse:
    deleted = await tokens.cleanup_expired()
    logger.info("Action token cleanup run", extra={"deleted": deleted})
    return TokenCleanupResponse(deleted=deleted)
