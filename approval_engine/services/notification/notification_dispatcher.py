"""
Approval notification dispatch.

Notifications are best effort: every failure is logged and swallowed,
nothing is retried, and the approval flow never waits on delivery. The
background variants run on their own session so they outlive the request
that scheduled them.
"""

import asyncio
from typing import Callable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from approval_engine.core.exceptions import BaseAppException
from approval_engine.core.logging import get_logger
from approval_engine.db.session import async_session_factory
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole, MessageStatus
from approval_engine.schemas.whatsapp.messages import WhatsAppConfigData
from approval_engine.services.approval.approver_resolver import ApproverResolver
from approval_engine.services.notification.entity_variants import get_variant
from approval_engine.services.whatsapp.action_token_service import ActionTokenService
from approval_engine.services.whatsapp.whatsapp_client import WhatsAppClient
from approval_engine.services.whatsapp.whatsapp_config_service import WhatsAppConfigService

__all__ = ["NotificationDispatcher"]

ClientFactory = Callable[[WhatsAppConfigData], WhatsAppClient]


class NotificationDispatcher:
    """
    Notifies the approvers of a step through WhatsApp.

    Args:
        session_factory: Opens the session each notification round runs on
        client_factory: Builds the channel client for an account
        signing_key: Action token key; resolved from settings when omitted
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        client_factory: Optional[ClientFactory] = None,
        signing_key: Optional[str] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.client_factory = client_factory or WhatsAppClient
        self.signing_key = signing_key
        self._tasks: Set[asyncio.Task] = set()
        self.logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Background scheduling
    # -------------------------------------------------------------------------

    def dispatch_for_step(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        role: ApprovalRole,
        requester_id: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule ``notify_for_step`` without awaiting it."""
        task = asyncio.get_running_loop().create_task(
            self.notify_for_step(tenant_id, entity_type, entity_id, role, requester_id)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def dispatch_next_level(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        next_role: ApprovalRole,
        requester_id: Optional[str] = None,
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self.notify_next_level(tenant_id, entity_type, entity_id, next_role, requester_id)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled notifications; used on shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Notification rounds
    # -------------------------------------------------------------------------

    async def notify_for_step(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        role: ApprovalRole,
        requester_id: Optional[str] = None,
    ) -> int:
        """
        Notify every eligible approver of ``role``.

        Returns:
            Number of messages accepted by the channel. Never raises.
        """
        log_context = {
            "tenant_id": tenant_id,
            "entity_type": str(getattr(entity_type, "value", entity_type)),
            "entity_id": entity_id,
            "role": str(getattr(role, "value", role)),
        }
        try:
            async with self.session_factory() as session:
                return await self._notify(session, tenant_id, entity_type, entity_id, role, requester_id, log_context)
        except Exception as e:
            self.logger.error(
                "Approval notification round failed",
                exc_info=True,
                extra={**log_context, "error_message": str(e)},
            )
            return 0

    async def notify_next_level(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        next_role: ApprovalRole,
        requester_id: Optional[str] = None,
    ) -> int:
        """Notification round for the step that became current after an advance."""
        self.logger.info(
            "Notifying next level approvers",
            extra={"entity_id": entity_id, "role": str(getattr(next_role, "value", next_role))},
        )
        return await self.notify_for_step(tenant_id, entity_type, entity_id, next_role, requester_id)

    async def _notify(
        self,
        session: AsyncSession,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        role: ApprovalRole,
        requester_id: Optional[str],
        log_context: dict,
    ) -> int:
        variant = get_variant(entity_type)
        details = await variant.fetch_details(session, entity_id)
        if details is None:
            self.logger.warning("No details found for entity", extra=log_context)
            return 0

        approver_ids = await ApproverResolver(session).resolve_approvers(tenant_id, role, requester_id)
        if requester_id:
            approver_ids.discard(requester_id)
        if not approver_ids:
            self.logger.warning("No approvers found for role", extra=log_context)
            return 0

        channel = WhatsAppConfigService(session)
        effective = await channel.get_effective_config(tenant_id)
        if effective is None:
            self.logger.info("WhatsApp not configured, skipping notifications", extra=log_context)
            return 0

        tokens = ActionTokenService(session, signing_key=self.signing_key)
        outgoing = []
        for approver_id in sorted(approver_ids):
            phone = await channel.get_member_phone(approver_id)
            if not phone:
                self.logger.info(
                    "Skipping approver without WhatsApp phone",
                    extra={**log_context, "approver_id": approver_id},
                )
                continue
            pair = await tokens.issue_pair(tenant_id, variant.entity_type, entity_id, approver_id)
            message = variant.template_for(phone, details, pair.approve_token, pair.reject_token)
            outgoing.append((approver_id, message))

        if not outgoing:
            return 0

        client = self.client_factory(effective.config)
        results = await asyncio.gather(
            *(
                client.send_template_message(m.to, m.template_name, m.language_code, m.components)
                for _, m in outgoing
            ),
            return_exceptions=True,
        )

        sent = 0
        for (approver_id, message), result in zip(outgoing, results):
            if isinstance(result, BaseException):
                reason = result.message if isinstance(result, BaseAppException) else str(result)
                self.logger.warning(
                    "Approval notification failed",
                    extra={**log_context, "approver_id": approver_id, "error_message": reason},
                )
                await channel.log_message(
                    tenant_id,
                    message.to,
                    MessageStatus.FAILED,
                    template_name=message.template_name,
                    error_message=reason,
                    entity_type=variant.entity_type,
                    entity_id=entity_id,
                )
                continue

            sent += 1
            self.logger.info(
                "Approval notification sent",
                extra={**log_context, "approver_id": approver_id, "wa_message_id": result},
            )
            await channel.log_message(
                tenant_id,
                message.to,
                MessageStatus.SENT,
                template_name=message.template_name,
                wa_message_id=result,
                entity_type=variant.entity_type,
                entity_id=entity_id,
            )
        return sent
