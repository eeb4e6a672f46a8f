"""
Signed single-use action tokens.

A token is ``{token_id}:{signature}`` where ``token_id`` is 128 random bits
in hex and ``signature`` is the truncated HMAC-SHA256 of
``{token_id}:{entity_type}:{entity_id}:{action}`` under the server key.
The payload lives in the database; the token only references it. Tokens
expire after a short TTL and are consumed atomically on first use.
"""

import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.config.settings import settings
from approval_engine.core.security.signing import HMACHelper, get_signing_key
from approval_engine.models.base.enums import ApprovalAction, ApprovalModule
from approval_engine.models.whatsapp.action_token import ActionToken
from approval_engine.repositories.whatsapp.action_token_repository import ActionTokenRepository
from approval_engine.schemas.whatsapp.tokens import (
    TokenError,
    TokenPair,
    TokenPayload,
    TokenValidationResult,
)
from approval_engine.services.base.base_service import BaseService
from approval_engine.utils.date_utils import utcnow

__all__ = ["ActionTokenService"]


class ActionTokenService(BaseService):
    """Issue, validate, consume and expire action tokens."""

    def __init__(
        self,
        session: AsyncSession,
        signing_key: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(session)
        self.tokens = ActionTokenRepository(session)
        self._signing_key = signing_key
        self.ttl = timedelta(minutes=ttl_minutes or settings.ACTION_TOKEN_TTL_MINUTES)
        self.clock = clock

    @property
    def signing_key(self) -> str:
        if self._signing_key is None:
            self._signing_key = get_signing_key()
        return self._signing_key

    # -------------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------------

    @staticmethod
    def _signed_message(token_id: str, entity_type: ApprovalModule, entity_id: str,
                        action: ApprovalAction) -> str:
        return f"{token_id}:{ApprovalModule(entity_type).value}:{entity_id}:{ApprovalAction(action).value}"

    def _sign(self, token_id: str, entity_type, entity_id: str, action) -> str:
        message = self._signed_message(token_id, entity_type, entity_id, action)
        digest = HMACHelper.generate_hmac(message, self.signing_key)
        return digest[:settings.ACTION_TOKEN_SIGNATURE_LENGTH]

    def _build(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        action: ApprovalAction,
        approver_id: str,
    ) -> ActionToken:
        token_id = secrets.token_hex(16)
        signature = self._sign(token_id, entity_type, entity_id, action)
        return ActionToken(
            token=f"{token_id}:{signature}",
            tenant_id=tenant_id,
            entity_type=ApprovalModule(entity_type),
            entity_id=entity_id,
            action=ApprovalAction(action),
            approver_id=approver_id,
            expires_at=self.clock() + self.ttl,
            used=False,
        )

    # -------------------------------------------------------------------------
    # Issuing
    # -------------------------------------------------------------------------

    async def issue(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        action: ApprovalAction,
        approver_id: str,
    ) -> str:
        """Persist a new token and return its string form."""
        row = self._build(tenant_id, entity_type, entity_id, action, approver_id)
        async with self.transaction():
            await self.tokens.create(row)
        return row.token

    async def issue_pair(
        self,
        tenant_id: str,
        entity_type: ApprovalModule,
        entity_id: str,
        approver_id: str,
    ) -> TokenPair:
        """Approve and reject tokens for one approver, persisted together."""
        approve = self._build(tenant_id, entity_type, entity_id, ApprovalAction.APPROVE, approver_id)
        reject = self._build(tenant_id, entity_type, entity_id, ApprovalAction.REJECT, approver_id)
        async with self.transaction():
            await self.tokens.create_many([approve, reject])

        self._logger.debug(
            "Issued action token pair",
            extra={
                "entity_type": ApprovalModule(entity_type).value,
                "entity_id": entity_id,
                "approver_id": approver_id,
            },
        )
        return TokenPair(approve_token=approve.token, reject_token=reject.token)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def _check(self, token: str):
        row = await self.tokens.get_by_token(token)
        if row is None:
            return None, TokenError.NOT_FOUND
        if row.used:
            return row, TokenError.ALREADY_USED
        if self.clock() > row.expires_at:
            return row, TokenError.EXPIRED

        token_id, _, signature = token.partition(":")
        message = self._signed_message(token_id, row.entity_type, row.entity_id, row.action)
        if not signature or not HMACHelper.verify_hmac(
            message, self.signing_key, signature, length=settings.ACTION_TOKEN_SIGNATURE_LENGTH,
        ):
            return row, TokenError.INVALID_SIGNATURE
        return row, None

    @staticmethod
    def _payload(row: ActionToken) -> TokenPayload:
        return TokenPayload(
            tenant_id=row.tenant_id,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            action=row.action,
            approver_id=row.approver_id,
        )

    async def validate(self, token: str) -> TokenValidationResult:
        """Check a token without consuming it."""
        row, error = await self._check(token)
        if error is not None:
            return TokenValidationResult.fail(error)
        return TokenValidationResult.ok(self._payload(row))

    async def validate_and_consume(self, token: str) -> TokenValidationResult:
        """
        Validate a token and mark it used in one guarded update.

        Checks run in a fixed order: existence, prior use, expiry, signature.
        Of two concurrent consumers exactly one wins; the other gets
        ``CONCURRENTLY_CONSUMED``.
        """
        async with self.transaction():
            row, error = await self._check(token)
            if error is not None:
                self._logger.debug("Action token rejected", extra={"reason": error.value})
                return TokenValidationResult.fail(error)

            consumed = await self.tokens.consume_if_unused(row.id, self.clock())

        if not consumed:
            self._logger.info(
                "Action token lost consumption race",
                extra={"entity_type": row.entity_type.value, "entity_id": row.entity_id},
            )
            return TokenValidationResult.fail(TokenError.CONCURRENTLY_CONSUMED)
        return TokenValidationResult.ok(self._payload(row))

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    async def invalidate_for_entity(self, entity_type: ApprovalModule, entity_id: str) -> int:
        """Mark every unused token of an entity as used. Returns the count."""
        async with self.transaction():
            count = await self.tokens.invalidate_for_entity(
                ApprovalModule(entity_type), entity_id, self.clock(),
            )
        if count:
            self._logger.info(
                "Invalidated action tokens",
                extra={"entity_type": ApprovalModule(entity_type).value, "entity_id": entity_id, "count": count},
            )
        return count

    async def cleanup_expired(self) -> int:
        """Delete expired tokens and used tokens past the retention window."""
        now = self.clock()
        cutoff = now - timedelta(hours=settings.USED_TOKEN_RETENTION_HOURS)
        async with self.transaction():
            deleted = await self.tokens.delete_stale(now, cutoff)
        self._logger.info("Cleaned up action tokens", extra={"deleted": deleted})
        return deleted
