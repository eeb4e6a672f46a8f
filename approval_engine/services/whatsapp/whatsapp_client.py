"""
WhatsApp Cloud API client.

Thin async wrapper over the Graph API messages endpoint. Provider errors
surface as ``WhatsAppApiError`` carrying Meta's error code.
"""

from typing import Any, Dict, List, Optional

import httpx

from approval_engine.config.settings import settings
from approval_engine.core.exceptions import WhatsAppApiError
from approval_engine.core.logging import get_logger
from approval_engine.schemas.whatsapp.messages import TemplateComponent, WhatsAppConfigData

logger = get_logger(__name__)

__all__ = ["WhatsAppClient"]


class WhatsAppClient:
    """
    Sends template and text messages through one WhatsApp Business number.

    Pass ``http_client`` to share a connection pool or to inject a mock
    transport; otherwise a client is created per request.
    """

    def __init__(
        self,
        config: WhatsAppConfigData,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.config = config
        self.base_url = (base_url or settings.whatsapp_api_url()).rstrip("/")
        self.timeout = timeout or settings.WHATSAPP_REQUEST_TIMEOUT
        self._http_client = http_client

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _recipient(to: str) -> str:
        return to.lstrip("+")

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            if self._http_client is not None:
                response = await self._http_client.request(method, url, json=json, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, json=json, headers=self.headers)
        except httpx.HTTPError as e:
            raise WhatsAppApiError(f"WhatsApp request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or "error" in data:
            error = data.get("error") or {}
            raise WhatsAppApiError(
                error.get("message") or f"WhatsApp API returned HTTP {response.status_code}",
                code=error.get("code"),
                details={"status_code": response.status_code},
            )
        return data

    async def _send(self, body: dict) -> str:
        data = await self._request("POST", f"{self.config.phone_number_id}/messages", json=body)
        messages = data.get("messages") or []
        if not messages or not messages[0].get("id"):
            raise WhatsAppApiError("WhatsApp API response did not include a message id")
        return messages[0]["id"]

    async def send_template_message(
        self,
        to: str,
        template_name: str,
        language_code: str,
        components: List[TemplateComponent],
    ) -> str:
        """
        Send a pre-approved template.

        Returns:
            The WhatsApp message id
        """
        body = {
            "messaging_product": "whatsapp",
            "to": self._recipient(to),
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": language_code},
                "components": [c.to_api() for c in components],
            },
        }
        message_id = await self._send(body)
        logger.debug("Template message sent", extra={"template_name": template_name, "wa_message_id": message_id})
        return message_id

    async def send_text_message(self, to: str, text: str) -> str:
        """Free-form text; only deliverable inside the 24h customer window."""
        body = {
            "messaging_product": "whatsapp",
            "to": self._recipient(to),
            "type": "text",
            "text": {"body": text},
        }
        return await self._send(body)

    async def test_connection(self) -> Dict[str, Any]:
        """Fetch the phone number's profile; ``success`` false on any API error."""
        try:
            data = await self._request(
                "GET",
                f"{self.config.phone_number_id}?fields=display_phone_number,verified_name",
            )
        except WhatsAppApiError as e:
            return {"success": False, "error": e.message}
        return {
            "success": True,
            "display_phone_number": data.get("display_phone_number"),
            "verified_name": data.get("verified_name"),
        }

    async def get_phone_numbers(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"{self.config.business_account_id}/phone_numbers")
        return list(data.get("data") or [])
