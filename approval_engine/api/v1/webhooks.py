"""
WhatsApp Cloud API webhook.

GET answers Meta's subscription challenge; POST receives message and
delivery status events.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PydanticValidationError

from approval_engine.api.deps import get_webhook_handler, get_webhook_limiter
from approval_engine.config.settings import settings
from approval_engine.core.logging import get_logger
from approval_engine.core.rate_limiting import FixedWindowLimiter, get_client_ip
from approval_engine.core.security.signing import HMACHelper
from approval_engine.schemas.whatsapp.webhook import WebhookPayload
from approval_engine.services.whatsapp.webhook_handler import WhatsAppWebhookHandler

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SIGNATURE_HEADER = "X-Hub-Signature-256"


@router.get("/whatsapp", response_class=PlainTextResponse)
async def verify_whatsapp_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    handler: WhatsAppWebhookHandler = Depends(get_webhook_handler),
) -> PlainTextResponse:
    if not mode or not verify_token or not challenge:
        return PlainTextResponse("Missing parameters", status_code=400)

    if mode == "subscribe" and await handler.verify_token(verify_token):
        logger.info("WhatsApp webhook verified")
        return PlainTextResponse(challenge, status_code=200)

    logger.warning("WhatsApp webhook verification failed")
    return PlainTextResponse("Invalid verify token", status_code=403)


@router.post("/whatsapp", response_class=PlainTextResponse)
async def receive_whatsapp_webhook(
    request: Request,
    handler: WhatsAppWebhookHandler = Depends(get_webhook_handler),
    limiter: FixedWindowLimiter = Depends(get_webhook_limiter),
) -> PlainTextResponse:
    client_ip = get_client_ip(request)
    limit = await limiter.check_limit(f"webhook:{client_ip}")
    if not limit.allowed:
        return PlainTextResponse(
            "Rate limit exceeded",
            status_code=429,
            headers={"Retry-After": str(limit.retry_after)},
        )

    body = await request.body()
    if settings.WHATSAPP_APP_SECRET:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            logger.warning("Missing webhook signature", extra={"client_ip": client_ip})
            return PlainTextResponse("Missing signature", status_code=403)
        if not HMACHelper.verify_webhook_signature(body, settings.WHATSAPP_APP_SECRET, signature):
            logger.warning("Invalid webhook signature", extra={"client_ip": client_ip})
            return PlainTextResponse("Invalid signature", status_code=403)

    try:
        payload = WebhookPayload.model_validate_json(body)
    except PydanticValidationError as e:
        logger.warning("Malformed webhook payload", extra={"error_message": str(e)})
        return PlainTextResponse("Invalid payload", status_code=400)

    try:
        await handler.handle(payload)
    except Exception as e:
        logger.error("Webhook processing failed", exc_info=True, extra={"error_message": str(e)})
        return PlainTextResponse("Internal error", status_code=500)
    return PlainTextResponse("OK", status_code=200)
