import json
from datetime import datetime

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from approval_engine.api import deps
from approval_engine.config.settings import settings
from approval_engine.core.rate_limiting import FixedWindowLimiter
from approval_engine.core.security.signing import HMACHelper
from approval_engine.db.session import build_engine, build_session_factory
from approval_engine.main import create_app
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole
from approval_engine.schemas.whatsapp.webhook import WebhookHandlingSummary
from approval_engine.services.approval.approval_processor import ApprovalProcessor
from approval_engine.services.base.service_result import ServiceResult
from approval_engine.services.whatsapp.action_token_service import ActionTokenService

LEAVE = ApprovalModule.LEAVE_REQUEST
WEBHOOK = "/api/v1/webhooks/whatsapp"


class StubWebhookHandler:
    def __init__(self, verify_tokens=("known-token",)):
        self.verify_tokens = set(verify_tokens)
        self.payloads = []

    async def verify_token(self, verify_token):
        return verify_token in self.verify_tokens

    async def handle(self, payload):
        self.payloads.append(payload)
        return ServiceResult.success(WebhookHandlingSummary())


@pytest.fixture
def handler():
    return StubWebhookHandler()


@pytest.fixture
def app(handler, redis_client):
    app = create_app()
    app.dependency_overrides[deps.get_webhook_handler] = lambda: handler
    app.dependency_overrides[deps.get_webhook_limiter] = lambda: FixedWindowLimiter(redis_client, 100, 60)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def test_webhook_challenge(client):
    params = {"hub.mode": "subscribe", "hub.verify_token": "known-token", "hub.challenge": "1158201444"}
    response = client.get(WEBHOOK, params=params)
    assert response.status_code == 200
    assert response.text == "1158201444"


def test_webhook_challenge_rejections(client):
    missing = client.get(WEBHOOK, params={"hub.mode": "subscribe"})
    wrong = client.get(
        WEBHOOK,
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1"},
    )
    assert (missing.status_code, missing.text) == (400, "Missing parameters")
    assert (wrong.status_code, wrong.text) == (403, "Invalid verify token")


def test_webhook_delivery_is_acknowledged(client, handler, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", None)
    response = client.post(WEBHOOK, content=json.dumps({"object": "whatsapp_business_account", "entry": []}))
    assert (response.status_code, response.text) == (200, "OK")
    assert handler.payloads[0].object == "whatsapp_business_account"


def test_webhook_rejects_malformed_body(client, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", None)
    response = client.post(WEBHOOK, content=b"{not json")
    assert (response.status_code, response.text) == (400, "Invalid payload")


def test_webhook_signature_is_enforced(client, handler, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", "app-secret")
    body = json.dumps({"entry": []}).encode()

    unsigned = client.post(WEBHOOK, content=body)
    forged = client.post(WEBHOOK, content=body, headers={"X-Hub-Signature-256": "sha256=deadbeef"})
    signed = client.post(
        WEBHOOK,
        content=body,
        headers={"X-Hub-Signature-256": HMACHelper.generate_webhook_signature(body, "app-secret")},
    )

    assert (unsigned.status_code, unsigned.text) == (403, "Missing signature")
    assert (forged.status_code, forged.text) == (403, "Invalid signature")
    assert signed.status_code == 200
    assert len(handler.payloads) == 1


def test_webhook_is_rate_limited(app, redis_client, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_APP_SECRET", None)
    clock = [120.0]
    limiter = FixedWindowLimiter(redis_client, 2, 60, clock=lambda: clock[0])
    app.dependency_overrides[deps.get_webhook_limiter] = lambda: limiter
    client = TestClient(app)

    codes = [client.post(WEBHOOK, content=b"{}").status_code for _ in range(3)]
    last = client.post(WEBHOOK, content=b"{}")
    clock[0] = 180.0
    next_window = client.post(WEBHOOK, content=b"{}")

    assert codes == [200, 200, 429]
    assert last.headers["Retry-After"] == "60"
    assert next_window.status_code == 200


@pytest.fixture
def seeded_leave(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            await seed.policy(session, org, LEAVE, [ApprovalRole.MANAGER, ApprovalRole.HR_MANAGER])
            leave = await seed.leave_request(session, org, team["employee"])
            await ApprovalProcessor(session, notify=False).start_approval(org.id, LEAVE, leave.id)
            return {name: member.id for name, member in team.items()}, leave.id

    return db.run(scenario)


@pytest.fixture
def api_client(app, db):
    # A fresh connection per session so each request can run on its own loop.
    factory = build_session_factory(build_engine(db.url, poolclass=NullPool, echo=False))

    async def override_db():
        async with factory() as session:
            yield session

    def quiet_processor(session=Depends(deps.get_db)):
        return ApprovalProcessor(session, notify=False)

    app.dependency_overrides[deps.get_db] = override_db
    app.dependency_overrides[deps.get_approval_processor] = quiet_processor
    return TestClient(app)


def test_read_chain_with_member_rights(api_client, seeded_leave):
    team, leave_id = seeded_leave
    response = api_client.get(f"/api/v1/approvals/LEAVE_REQUEST/{leave_id}", params={"member_id": team["manager"]})

    assert response.status_code == 200
    body = response.json()
    assert [s["required_role"] for s in body["steps"]] == ["MANAGER", "HR_MANAGER"]
    assert body["summary"]["current_step"] == 1
    assert body["summary"]["can_current_user_approve"] is True


def test_missing_chain_is_404(api_client, seeded_leave):
    response = api_client.get("/api/v1/approvals/LEAVE_REQUEST/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "APPROVAL_CHAIN_NOT_FOUND"


def test_record_action_and_cancel(api_client, seeded_leave):
    team, leave_id = seeded_leave
    url = f"/api/v1/approvals/LEAVE_REQUEST/{leave_id}"

    refused = api_client.post(f"{url}/actions", json={"approver_id": team["hr"], "action": "approve"})
    approved = api_client.post(f"{url}/actions", json={"approver_id": team["manager"], "action": "approve"})
    cancelled = api_client.post(f"{url}/cancel")

    assert refused.status_code == 403
    assert refused.json()["detail"]["code"] == "UNAUTHORIZED"
    assert approved.status_code == 200
    assert approved.json()["summary"]["current_role"] == "HR_MANAGER"
    assert cancelled.json() == {"entity_type": "LEAVE_REQUEST", "entity_id": leave_id, "skipped_steps": 1}


def test_cron_cleanup_requires_secret(api_client, db, monkeypatch):
    async def scenario(factory):
        async with factory() as session:
            issued_last_year = ActionTokenService(session, clock=lambda: datetime(2025, 10, 19, 9, 0))
            await issued_last_year.issue_pair("tenant-1", LEAVE, "leave-1", "approver-x")

    db.run(scenario)
    url = "/api/v1/cron/cleanup-action-tokens"

    monkeypatch.setattr(settings, "CRON_SECRET", None)
    unconfigured = api_client.post(url, headers={"Authorization": "Bearer anything"})
    monkeypatch.setattr(settings, "CRON_SECRET", "cron-secret")
    wrong = api_client.post(url, headers={"Authorization": "Bearer guess"})
    ran = api_client.post(url, headers={"Authorization": "Bearer cron-secret"})
    again = api_client.post(url, headers={"Authorization": "Bearer cron-secret"})

    assert unconfigured.status_code == 503
    assert wrong.status_code == 401
    assert ran.json() == {"deleted": 2}
    assert again.json() == {"deleted": 0}


def test_requester_cannot_approve_own_request(api_client, db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            await seed.policy(session, org, LEAVE, [ApprovalRole.MANAGER])
            own_leave = await seed.leave_request(session, org, team["director"])
            await ApprovalProcessor(session, notify=False).start_approval(org.id, LEAVE, own_leave.id)
            return team["director"].id, team["manager"].id, own_leave.id

    director_id, manager_id, leave_id = db.run(scenario)
    response = api_client.post(
        f"/api/v1/approvals/LEAVE_REQUEST/{leave_id}/actions",
        json={"approver_id": director_id, "action": "approve", "requester_id": manager_id},
    )

    assert response.status_code == 403
    assert response.json()["detail"]["message"] == "Requesters cannot approve their own request"
