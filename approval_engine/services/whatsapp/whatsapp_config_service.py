"""
WhatsApp account configuration, recipient phones and message log.

A tenant sends through its own account (CUSTOM), the shared platform
account (PLATFORM, when enabled for it) or not at all (NONE). Access tokens
are stored AES-256-GCM encrypted and only decrypted into
``WhatsAppConfigData``, which must never be logged.
"""

import re
import secrets
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from approval_engine.config.settings import settings
from approval_engine.core.security.encryption import TokenCipher, mask_secret
from approval_engine.core.security.signing import get_encryption_key
from approval_engine.models.base.enums import ApprovalModule, MessageStatus, WhatsAppSource
from approval_engine.models.whatsapp.message_log import WhatsAppMessageLog
from approval_engine.models.whatsapp.whatsapp_config import PlatformWhatsAppConfig, WhatsAppConfig
from approval_engine.models.whatsapp.whatsapp_user_phone import WhatsAppUserPhone
from approval_engine.repositories.organization.team_member_repository import (
    OrganizationRepository,
    TeamMemberRepository,
)
from approval_engine.repositories.whatsapp.whatsapp_repository import (
    MessageLogRepository,
    WhatsAppConfigRepository,
    WhatsAppUserPhoneRepository,
)
from approval_engine.schemas.whatsapp.messages import (
    CanSendResult,
    EffectiveWhatsAppConfig,
    WhatsAppConfigData,
)
from approval_engine.services.base.base_service import BaseService

__all__ = ["WhatsAppConfigService", "normalize_phone_number"]

_NON_DIAL_CHARS = re.compile(r"[^\d+]")


def normalize_phone_number(phone: str) -> str:
    """
    Normalize to E.164.

    - leading ``+`` is kept as is
    - ``00`` prefix becomes ``+``
    - 8 digits are a Qatar local number
    - anything else gets a ``+``
    """
    cleaned = _NON_DIAL_CHARS.sub("", phone)
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]
    if len(cleaned) == 8:
        return settings.WHATSAPP_DEFAULT_COUNTRY_CODE + cleaned
    return "+" + cleaned


class WhatsAppConfigService(BaseService):
    """Tenant channel configuration and recipient lookup."""

    def __init__(self, session: AsyncSession, cipher: Optional[TokenCipher] = None):
        super().__init__(session)
        self.configs = WhatsAppConfigRepository(session)
        self.phones = WhatsAppUserPhoneRepository(session)
        self.message_logs = MessageLogRepository(session)
        self.members = TeamMemberRepository(session)
        self.organizations = OrganizationRepository(session)
        self._cipher = cipher

    @property
    def cipher(self) -> TokenCipher:
        if self._cipher is None:
            self._cipher = TokenCipher(get_encryption_key())
        return self._cipher

    def _to_data(self, config) -> WhatsAppConfigData:
        return WhatsAppConfigData(
            phone_number_id=config.phone_number_id,
            business_account_id=config.business_account_id,
            access_token=self.cipher.decrypt(config.access_token_encrypted),
            webhook_verify_token=config.webhook_verify_token,
            is_active=config.is_active,
        )

    # -------------------------------------------------------------------------
    # Account configuration
    # -------------------------------------------------------------------------

    async def get_tenant_config(self, tenant_id: str) -> Optional[WhatsAppConfigData]:
        config = await self.configs.get_for_tenant(tenant_id)
        if config is None or not config.is_active:
            return None
        return self._to_data(config)

    async def get_platform_config(self) -> Optional[WhatsAppConfigData]:
        config = await self.configs.get_active_platform()
        return self._to_data(config) if config is not None else None

    async def get_effective_config(self, tenant_id: str) -> Optional[EffectiveWhatsAppConfig]:
        """
        The account a tenant currently sends through, or None when disabled.
        """
        org = await self.organizations.find_by_id(tenant_id)
        if org is None or org.whatsapp_source == WhatsAppSource.NONE:
            return None

        if org.whatsapp_source == WhatsAppSource.CUSTOM:
            config = await self.get_tenant_config(tenant_id)
            if config is not None:
                return EffectiveWhatsAppConfig(config=config, source=WhatsAppSource.CUSTOM)

        if org.whatsapp_source == WhatsAppSource.PLATFORM and org.whatsapp_platform_enabled:
            config = await self.get_platform_config()
            if config is not None:
                return EffectiveWhatsAppConfig(config=config, source=WhatsAppSource.PLATFORM)

        return None

    async def save_config(
        self,
        tenant_id: str,
        phone_number_id: str,
        business_account_id: str,
        access_token: str,
    ) -> WhatsAppConfig:
        """Create or update the tenant account; the verify token is kept on update."""
        encrypted = self.cipher.encrypt(access_token)
        async with self.transaction():
            config = await self.configs.get_for_tenant(tenant_id)
            if config is None:
                config = await self.configs.create(WhatsAppConfig(
                    tenant_id=tenant_id,
                    phone_number_id=phone_number_id,
                    business_account_id=business_account_id,
                    access_token_encrypted=encrypted,
                    webhook_verify_token=secrets.token_hex(32),
                    is_active=True,
                ))
            else:
                config.phone_number_id = phone_number_id
                config.business_account_id = business_account_id
                config.access_token_encrypted = encrypted
                config.is_active = True
                await self.configs.flush()

        self._logger.info(
            "WhatsApp configuration saved",
            extra={"tenant_id": tenant_id, "access_token": mask_secret(access_token)},
        )
        return config

    async def save_platform_config(
        self,
        phone_number_id: str,
        business_account_id: str,
        access_token: str,
        display_phone_number: Optional[str] = None,
        business_name: Optional[str] = None,
    ) -> PlatformWhatsAppConfig:
        encrypted = self.cipher.encrypt(access_token)
        async with self.transaction():
            config = await self.configs.get_active_platform()
            if config is None:
                config = PlatformWhatsAppConfig(webhook_verify_token=secrets.token_hex(32))
                self.session.add(config)
            config.phone_number_id = phone_number_id
            config.business_account_id = business_account_id
            config.access_token_encrypted = encrypted
            config.display_phone_number = display_phone_number
            config.business_name = business_name
            config.is_active = True
            await self.configs.flush()

        self._logger.info("Platform WhatsApp configuration saved")
        return config

    async def disable(self, tenant_id: str) -> bool:
        async with self.transaction():
            affected = await self.configs.conditional_update(
                (WhatsAppConfig.tenant_id == tenant_id,),
                {"is_active": False},
            )
        return affected == 1

    async def find_verify_token_match(self, verify_token: str) -> bool:
        """Whether a webhook verify token belongs to the platform or any tenant."""
        platform = await self.configs.get_active_platform()
        if platform is not None and secrets.compare_digest(platform.webhook_verify_token, verify_token):
            return True
        return await self.configs.find_tenant_by_verify_token(verify_token) is not None

    # -------------------------------------------------------------------------
    # Recipients
    # -------------------------------------------------------------------------

    async def get_member_phone(self, member_id: str) -> Optional[str]:
        """
        Recipient number for a member.

        A verified registration wins; otherwise the HR profile mobile is
        used, Qatar number first.
        """
        registration = await self.phones.get_by_member(member_id)
        if registration is not None and registration.is_verified:
            return registration.phone_number

        member = await self.members.find_by_id(member_id)
        if member is None:
            return None
        if member.qatar_mobile:
            return normalize_phone_number(member.qatar_mobile)
        if member.other_mobile_number:
            code = member.other_mobile_code or settings.WHATSAPP_FALLBACK_COUNTRY_CODE
            return normalize_phone_number(f"{code}{member.other_mobile_number}")
        return None

    async def save_member_phone(self, tenant_id: str, member_id: str, phone_number: str) -> WhatsAppUserPhone:
        """Register a number; changing it resets verification."""
        normalized = normalize_phone_number(phone_number)
        async with self.transaction():
            registration = await self.phones.get_by_member(member_id)
            if registration is None:
                registration = await self.phones.create(WhatsAppUserPhone(
                    tenant_id=tenant_id,
                    member_id=member_id,
                    phone_number=normalized,
                    is_verified=False,
                ))
            else:
                registration.phone_number = normalized
                registration.is_verified = False
                await self.phones.flush()
        return registration

    async def verify_member_phone(self, member_id: str) -> bool:
        async with self.transaction():
            affected = await self.phones.conditional_update(
                (WhatsAppUserPhone.member_id == member_id,),
                {"is_verified": True},
            )
        return affected == 1

    async def can_send(self, tenant_id: str, member_id: str) -> CanSendResult:
        """Channel eligibility: an effective account and a recipient number."""
        if await self.get_effective_config(tenant_id) is None:
            return CanSendResult(can_send=False, reason="WhatsApp not configured for organization")
        phone = await self.get_member_phone(member_id)
        if not phone:
            return CanSendResult(can_send=False, reason="No WhatsApp phone number for member")
        return CanSendResult(can_send=True, phone=phone)

    # -------------------------------------------------------------------------
    # Message log
    # -------------------------------------------------------------------------

    async def log_message(
        self,
        tenant_id: str,
        recipient: str,
        status: MessageStatus,
        template_name: Optional[str] = None,
        wa_message_id: Optional[str] = None,
        error_message: Optional[str] = None,
        entity_type: Optional[ApprovalModule] = None,
        entity_id: Optional[str] = None,
    ) -> WhatsAppMessageLog:
        async with self.transaction():
            entry = await self.message_logs.create(WhatsAppMessageLog(
                tenant_id=tenant_id,
                recipient=recipient,
                template_name=template_name,
                wa_message_id=wa_message_id,
                status=status,
                error_message=error_message,
                entity_type=entity_type,
                entity_id=entity_id,
            ))
        return entry

    async def update_message_status(
        self,
        wa_message_id: str,
        status: MessageStatus,
        error_message: Optional[str] = None,
    ) -> int:
        async with self.transaction():
            return await self.message_logs.update_status(wa_message_id, status, error_message)
