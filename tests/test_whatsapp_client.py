import asyncio
import json

import httpx
import pytest

from approval_engine.core.exceptions import WhatsAppApiError
from approval_engine.schemas.whatsapp.messages import TemplateComponent, TemplateParameter, WhatsAppConfigData
from approval_engine.services.whatsapp.whatsapp_client import WhatsAppClient

CONFIG = WhatsAppConfigData(
    phone_number_id="1098765",
    business_account_id="2233445",
    access_token="EAAG-secret",
)


def client_for(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppClient(CONFIG, http_client=http_client, base_url="https://graph.test/v18.0")


def test_send_template_message_posts_graph_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.123"}]})

    components = [TemplateComponent(type="body", parameters=[TemplateParameter(type="text", text="Eli")])]
    message_id = asyncio.run(
        client_for(handler).send_template_message("+97455500002", "leave_approval_request", "en", components)
    )

    assert message_id == "wamid.123"
    assert seen["url"] == "https://graph.test/v18.0/1098765/messages"
    assert seen["auth"] == "Bearer EAAG-secret"
    assert seen["body"]["to"] == "97455500002"
    assert seen["body"]["template"] == {
        "name": "leave_approval_request",
        "language": {"code": "en"},
        "components": [{"type": "body", "parameters": [{"type": "text", "text": "Eli"}]}],
    }


def test_send_text_message():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["type"] == "text"
        assert body["text"] == {"body": "Done"}
        return httpx.Response(200, json={"messages": [{"id": "wamid.456"}]})

    assert asyncio.run(client_for(handler).send_text_message("+97455500002", "Done")) == "wamid.456"


def test_provider_error_is_raised_with_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Invalid parameter", "code": 100}})

    with pytest.raises(WhatsAppApiError) as excinfo:
        asyncio.run(client_for(handler).send_text_message("+1", "hi"))
    assert excinfo.value.message == "Invalid parameter"
    assert excinfo.value.code == 100
    assert excinfo.value.details["status_code"] == 400


def test_error_without_body_uses_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(WhatsAppApiError, match="HTTP 503"):
        asyncio.run(client_for(handler).send_text_message("+1", "hi"))


def test_missing_message_id_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"messages": []})

    with pytest.raises(WhatsAppApiError):
        asyncio.run(client_for(handler).send_text_message("+1", "hi"))


def test_transport_failure_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(WhatsAppApiError, match="request failed"):
        asyncio.run(client_for(handler).send_text_message("+1", "hi"))


def test_connection_check_and_phone_numbers():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/phone_numbers"):
            return httpx.Response(200, json={"data": [{"id": "1098765", "display_phone_number": "+974 5550"}]})
        if request.url.params.get("fields"):
            return httpx.Response(200, json={"display_phone_number": "+974 5550", "verified_name": "Acme"})
        return httpx.Response(404)

    async def scenario():
        client = client_for(handler)
        return await client.test_connection(), await client.get_phone_numbers()

    connection, numbers = asyncio.run(scenario())

    assert connection == {"success": True, "display_phone_number": "+974 5550", "verified_name": "Acme"}
    assert numbers[0]["id"] == "1098765"


def test_connection_check_reports_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid OAuth access token", "code": 190}})

    result = asyncio.run(client_for(handler).test_connection())
    assert result == {"success": False, "error": "Invalid OAuth access token"}
