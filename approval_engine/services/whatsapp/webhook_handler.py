"""
Inbound WhatsApp webhook processing.

Delivery status callbacks update the message log. Quick-reply button
presses carry an action token; a valid token is consumed and turned into
an approval action on the entity's current step, acting as the approver
the token was issued to.
"""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.core.logging import log_execution_time
from approval_engine.models.base.enums import ApprovalAction, MessageStatus
from approval_engine.schemas.whatsapp.messages import WhatsAppConfigData
from approval_engine.schemas.whatsapp.tokens import TokenPayload
from approval_engine.schemas.whatsapp.webhook import (
    WebhookHandlingSummary,
    WebhookMessage,
    WebhookPayload,
    WebhookStatus,
)
from approval_engine.services.approval.approval_processor import ApprovalProcessor
from approval_engine.services.base.base_service import BaseService
from approval_engine.services.base.service_result import ServiceResult
from approval_engine.services.notification.entity_variants import get_variant
from approval_engine.services.notification.templates import build_action_confirmation_text
from approval_engine.services.whatsapp.action_token_service import ActionTokenService
from approval_engine.services.whatsapp.whatsapp_client import WhatsAppClient
from approval_engine.services.whatsapp.whatsapp_config_service import WhatsAppConfigService

__all__ = ["WhatsAppWebhookHandler"]

_CHANNEL_NOTES = {
    ApprovalAction.APPROVE: "Approved via WhatsApp",
    ApprovalAction.REJECT: "Rejected via WhatsApp",
}


class WhatsAppWebhookHandler(BaseService):
    """Applies Meta webhook events to the message log and approval chains."""

    def __init__(
        self,
        session: AsyncSession,
        processor: Optional[ApprovalProcessor] = None,
        client_factory: Optional[Callable[[WhatsAppConfigData], WhatsAppClient]] = None,
        token_service: Optional[ActionTokenService] = None,
        config_service: Optional[WhatsAppConfigService] = None,
    ):
        super().__init__(session)
        self.tokens = token_service or ActionTokenService(session)
        self.processor = processor or ApprovalProcessor(session, token_service=self.tokens)
        self.channel = config_service or WhatsAppConfigService(session)
        self.client_factory = client_factory or WhatsAppClient

    async def verify_token(self, verify_token: str) -> bool:
        return await self.channel.find_verify_token_match(verify_token)

    @log_execution_time()
    async def handle(self, payload: WebhookPayload) -> ServiceResult[WebhookHandlingSummary]:
        """
        Process every ``messages`` change in the payload.

        Individual events never fail the whole delivery; their errors are
        logged so the provider does not retry.
        """
        summary = WebhookHandlingSummary()
        for entry in payload.entry:
            for change in entry.changes:
                if change.field != "messages":
                    continue
                for status in change.value.statuses:
                    summary.statuses_updated += await self._handle_status(status)
                for message in change.value.messages:
                    if await self._handle_message(message):
                        summary.actions_processed += 1
                    else:
                        summary.actions_ignored += 1
        return ServiceResult.success(summary)

    async def _handle_status(self, status: WebhookStatus) -> int:
        try:
            new_status = MessageStatus(status.status)
        except ValueError:
            self._logger.debug("Ignoring unknown delivery status", extra={"delivery_status": status.status})
            return 0
        try:
            return await self.channel.update_message_status(status.id, new_status, status.error_message())
        except Exception as e:
            self._logger.error(
                "Failed to update message status",
                exc_info=True,
                extra={"wa_message_id": status.id, "error_message": str(e)},
            )
            return 0

    async def _handle_message(self, message: WebhookMessage) -> bool:
        token = message.action_payload()
        if not token:
            return False

        validation = await self.tokens.validate_and_consume(token)
        if not validation.valid:
            self._logger.debug(
                "Ignoring invalid action token",
                extra={"reason": validation.error.value if validation.error else None},
            )
            return False

        try:
            return await self._execute(validation.payload, message.sender)
        except Exception as e:
            self._logger.error(
                "Failed to process WhatsApp action",
                exc_info=True,
                extra={"entity_id": validation.payload.entity_id, "error_message": str(e)},
            )
            return False

    async def _execute(self, token: TokenPayload, sender: str) -> bool:
        action = ApprovalAction(token.action)
        result = await self.processor.process_action(
            token.entity_type,
            token.entity_id,
            token.approver_id,
            action,
            notes=_CHANNEL_NOTES[action],
        )
        await self.tokens.invalidate_for_entity(token.entity_type, token.entity_id)

        if not result.is_success:
            self._logger.info(
                "WhatsApp action not applied",
                extra={
                    "entity_id": token.entity_id,
                    "approver_id": token.approver_id,
                    "reason": result.message,
                },
            )
            return False

        self._logger.info(
            "WhatsApp action applied",
            extra={
                "entity_type": token.entity_type.value,
                "entity_id": token.entity_id,
                "approver_id": token.approver_id,
                "action": action.value,
            },
        )
        await self._confirm(token, action, sender)
        return True

    async def _confirm(self, token: TokenPayload, action: ApprovalAction, sender: str) -> None:
        """Best-effort confirmation text back to the approver."""
        try:
            details = await get_variant(token.entity_type).fetch_details(self.session, token.entity_id)
            effective = await self.channel.get_effective_config(token.tenant_id)
            if details is None or effective is None:
                return
            text = build_action_confirmation_text(action, token.entity_type, details)
            await self.client_factory(effective.config).send_text_message(sender, text)
        except Exception as e:
            self._logger.warning(
                "Failed to send action confirmation",
                extra={"entity_id": token.entity_id, "error_message": str(e)},
            )
