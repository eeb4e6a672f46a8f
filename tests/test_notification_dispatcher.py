import httpx

from approval_engine.core.exceptions import WhatsAppApiError
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole, MessageStatus, WhatsAppSource
from approval_engine.repositories.whatsapp.action_token_repository import ActionTokenRepository
from approval_engine.repositories.whatsapp.whatsapp_repository import MessageLogRepository
from approval_engine.services.notification.notification_dispatcher import NotificationDispatcher
from approval_engine.services.whatsapp.whatsapp_config_service import WhatsAppConfigService

LEAVE = ApprovalModule.LEAVE_REQUEST


class RecordingClient:
    """Stands in for the Graph API; numbers in ``unreachable`` fail."""

    def __init__(self, unreachable=()):
        self.unreachable = set(unreachable)
        self.sent = []
        self.configs = []

    def __call__(self, config):
        self.configs.append(config)
        return self

    async def send_template_message(self, to, template_name, language_code, components):
        if to in self.unreachable:
            raise WhatsAppApiError("Recipient is not a WhatsApp user", code=131026)
        self.sent.append({"to": to, "template": template_name, "components": components})
        return f"wamid.{len(self.sent)}"


async def configured_org(session, seed):
    org = await seed.organization(session, source=WhatsAppSource.CUSTOM)
    await WhatsAppConfigService(session).save_config(org.id, "1098765", "2233445", "EAAG-secret")
    return org


def test_notifies_each_approver_and_logs_outcome(db, seed):
    client = RecordingClient(unreachable={"+97455500009"})

    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            team = await seed.team(session, org)
            hal = await seed.member(session, org, "Hal HR", has_hr_access=True, qatar_mobile="55500009")
            await seed.member(session, org, "Phoneless HR", has_hr_access=True)
            leave = await seed.leave_request(session, org, team["employee"])

        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=client)
        sent = await dispatcher.notify_for_step(org.id, LEAVE, leave.id, ApprovalRole.HR_MANAGER, team["employee"].id)

        async with factory() as session:
            tokens = await ActionTokenRepository(session).find_by_criteria({"entity_id": leave.id})
            logs = await MessageLogRepository(session).find_by_criteria({"entity_id": leave.id})
        return sent, tokens, logs, {team["hr"].id, hal.id}

    sent, tokens, logs, reachable_ids = db.run(scenario)

    assert sent == 1
    assert [m["to"] for m in client.sent] == ["+97455500003"]
    assert client.sent[0]["template"] == "leave_approval_request"
    assert client.configs[0].access_token == "EAAG-secret"
    assert len(tokens) == 4
    assert {t.approver_id for t in tokens} == reachable_ids

    by_status = {log.status: log for log in logs}
    assert set(by_status) == {MessageStatus.SENT, MessageStatus.FAILED}
    assert by_status[MessageStatus.SENT].wa_message_id == "wamid.1"
    assert by_status[MessageStatus.SENT].recipient == "+97455500003"
    assert by_status[MessageStatus.FAILED].error_message == "Recipient is not a WhatsApp user"


def test_skips_when_channel_not_configured(db, seed):
    client = RecordingClient()

    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])
        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=client)
        return await dispatcher.notify_for_step(org.id, LEAVE, leave.id, ApprovalRole.HR_MANAGER)

    assert db.run(scenario) == 0
    assert client.configs == []


def test_requester_is_never_notified(db, seed):
    client = RecordingClient()

    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["hr"])
        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=client)
        return await dispatcher.notify_for_step(org.id, LEAVE, leave.id, ApprovalRole.HR_MANAGER, team["hr"].id)

    assert db.run(scenario) == 0
    assert client.sent == []


def test_missing_request_sends_nothing(db, seed):
    client = RecordingClient()

    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            await seed.team(session, org)
        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=client)
        return await dispatcher.notify_for_step(org.id, LEAVE, "missing-leave", ApprovalRole.HR_MANAGER)

    assert db.run(scenario) == 0
    assert client.sent == []


def test_failures_never_escape(db, seed):
    def broken_factory(config):
        raise RuntimeError("client construction failed")

    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])
        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=broken_factory)
        return await dispatcher.notify_for_step(org.id, LEAVE, leave.id, ApprovalRole.MANAGER, team["employee"].id)

    assert db.run(scenario) == 0


def test_background_dispatch_and_drain(db, seed):
    client = RecordingClient()

    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])
        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=client)
        task = dispatcher.dispatch_next_level(org.id, LEAVE, leave.id, ApprovalRole.MANAGER, team["employee"].id)
        await dispatcher.drain()
        return task.result()

    assert db.run(scenario) == 1
    assert [m["to"] for m in client.sent] == ["+97455500002"]


class TimingOutClient(RecordingClient):
    async def send_template_message(self, to, template_name, language_code, components):
        raise httpx.ReadTimeout("timed out")


def test_transport_failure_is_logged_verbatim(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await configured_org(session, seed)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])

        dispatcher = NotificationDispatcher(session_factory=factory, client_factory=TimingOutClient())
        sent = await dispatcher.notify_for_step(org.id, LEAVE, leave.id, ApprovalRole.HR_MANAGER, team["employee"].id)

        async with factory() as session:
            logs = await MessageLogRepository(session).find_by_criteria({"entity_id": leave.id})
        return sent, logs

    sent, logs = db.run(scenario)
    assert sent == 0
    assert [(log.status, log.error_message) for log in logs] == [(MessageStatus.FAILED, "timed out")]
