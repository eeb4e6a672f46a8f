from approval_engine.models.base.enums import (
    ApprovalAction,
    ApprovalModule,
    ApprovalRole,
    ChainStatus,
    RequestStatus,
)
from approval_engine.schemas.whatsapp.tokens import TokenError
from approval_engine.services.approval.approval_processor import ApprovalProcessor
from approval_engine.services.base.service_result import ErrorCode
from approval_engine.services.notification.entity_variants import get_variant

LEAVE = ApprovalModule.LEAVE_REQUEST
MANAGER_THEN_HR = [ApprovalRole.MANAGER, ApprovalRole.HR_MANAGER]


class FakeDispatcher:
    """Records scheduled notification rounds instead of sending them."""

    def __init__(self):
        self.calls = []

    def dispatch_for_step(self, tenant_id, entity_type, entity_id, role, requester_id=None):
        self.calls.append(("step", entity_id, role, requester_id))

    def dispatch_next_level(self, tenant_id, entity_type, entity_id, next_role, requester_id=None):
        self.calls.append(("next", entity_id, next_role, requester_id))


async def leave_status(session, leave_id):
    leave = await get_variant(LEAVE).load(session, leave_id)
    return leave.status


async def started_leave(session, seed, dispatcher, roles=MANAGER_THEN_HR):
    org = await seed.organization(session)
    team = await seed.team(session, org)
    await seed.policy(session, org, LEAVE, roles)
    leave = await seed.leave_request(session, org, team["employee"])
    processor = ApprovalProcessor(session, dispatcher=dispatcher)
    started = await processor.start_approval(org.id, LEAVE, leave.id)
    return processor, started, team, leave


def test_empty_policy_auto_approves(db, seed):
    dispatcher = FakeDispatcher()

    async def scenario(factory):
        async with factory() as session:
            _, started, _, leave = await started_leave(session, seed, dispatcher, roles=[])
            return started, await leave_status(session, leave.id)

    started, status = db.run(scenario)
    assert started.is_success
    assert started.data.auto_approved is True
    assert started.data.chain_exists is False
    assert status == RequestStatus.APPROVED
    assert dispatcher.calls == []


def test_start_opens_chain_and_notifies_first_level(db, seed):
    dispatcher = FakeDispatcher()

    async def scenario(factory):
        async with factory() as session:
            _, started, team, leave = await started_leave(session, seed, dispatcher)
            return started, team, leave

    started, team, leave = db.run(scenario)
    assert started.is_success
    assert started.data.chain_status == ChainStatus.PENDING
    assert started.data.summary.total_steps == 2
    assert started.data.summary.current_role == ApprovalRole.MANAGER
    assert dispatcher.calls == [("step", leave.id, ApprovalRole.MANAGER, team["employee"].id)]


def test_start_without_policy_fails_closed(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])
            result = await ApprovalProcessor(session, notify=False).start_approval(org.id, LEAVE, leave.id)
            return result, await leave_status(session, leave.id)

    result, status = db.run(scenario)
    assert result.is_success is False
    assert result.error.code == ErrorCode.CONFIGURATION_ERROR
    assert status == RequestStatus.PENDING


def test_full_approval_walks_the_chain(db, seed):
    dispatcher = FakeDispatcher()

    async def scenario(factory):
        async with factory() as session:
            processor, _, team, leave = await started_leave(session, seed, dispatcher)
            pair = await processor.tokens.issue_pair(leave.tenant_id, LEAVE, leave.id, team["manager"].id)

            refused = await processor.process_action(LEAVE, leave.id, team["hr"].id, ApprovalAction.APPROVE)
            first = await processor.process_action(LEAVE, leave.id, team["manager"].id, ApprovalAction.APPROVE)
            mid_status = await leave_status(session, leave.id)
            token_after = await processor.tokens.validate(pair.approve_token)
            second = await processor.process_action(LEAVE, leave.id, team["hr"].id, ApprovalAction.APPROVE)
            return refused, first, mid_status, token_after, second, await leave_status(session, leave.id), team, leave

    refused, first, mid_status, token_after, second, final_status, team, leave = db.run(scenario)

    assert refused.is_success is False
    assert refused.error.code == ErrorCode.UNAUTHORIZED

    assert first.is_success
    assert first.message == "Leave Request approved"
    assert first.data.is_chain_complete is False
    assert first.data.outcome.next_step.required_role == ApprovalRole.HR_MANAGER
    assert mid_status == RequestStatus.PENDING
    assert token_after.error == TokenError.ALREADY_USED
    assert dispatcher.calls[-1] == ("next", leave.id, ApprovalRole.HR_MANAGER, team["employee"].id)

    assert second.data.is_chain_complete is True
    assert second.data.chain_status == ChainStatus.APPROVED
    assert second.data.summary.completed_steps == 2
    assert final_status == RequestStatus.APPROVED


def test_rejection_finalizes_request(db, seed):
    async def scenario(factory):
        async with factory() as session:
            processor, _, team, leave = await started_leave(session, seed, FakeDispatcher())
            rejected = await processor.process_action(
                LEAVE, leave.id, team["manager"].id, ApprovalAction.REJECT, notes="Team is short staffed",
            )
            late = await processor.process_action(LEAVE, leave.id, team["hr"].id, ApprovalAction.APPROVE)
            return rejected, late, await leave_status(session, leave.id)

    rejected, late, status = db.run(scenario)
    assert rejected.message == "Leave Request rejected"
    assert rejected.data.chain_status == ChainStatus.REJECTED
    assert status == RequestStatus.REJECTED
    assert late.is_success is False
    assert late.error.code == ErrorCode.CONFLICT


def test_override_requires_notes(db, seed):
    async def scenario(factory):
        async with factory() as session:
            processor, _, team, leave = await started_leave(session, seed, FakeDispatcher())
            leave_id, hr_id = leave.id, team["hr"].id
            silent = await processor.process_action(
                LEAVE, leave_id, hr_id, ApprovalAction.APPROVE, level_order=2,
            )
            noted = await processor.process_action(
                LEAVE, leave_id, hr_id, ApprovalAction.APPROVE, level_order=2, notes="Manager on leave",
            )
            return silent, noted, await leave_status(session, leave_id)

    silent, noted, status = db.run(scenario)
    assert silent.error.code == ErrorCode.VALIDATION_ERROR
    assert noted.data.outcome.is_override is True
    assert noted.data.outcome.skipped_levels == [1]
    assert noted.data.is_chain_complete is True
    assert status == RequestStatus.APPROVED


def test_cancel_withdraws_request(db, seed):
    async def scenario(factory):
        async with factory() as session:
            processor, _, team, leave = await started_leave(session, seed, FakeDispatcher())
            cancelled = await processor.cancel(LEAVE, leave.id)
            return cancelled, await leave_status(session, leave.id)

    cancelled, status = db.run(scenario)
    assert cancelled.is_success
    assert cancelled.data.skipped_steps == 2
    assert status == RequestStatus.CANCELLED


def test_bypass_is_admin_only(db, seed):
    async def scenario(factory):
        async with factory() as session:
            processor, _, team, leave = await started_leave(session, seed, FakeDispatcher())
            denied = await processor.bypass(LEAVE, leave.id, team["manager"].id)
            granted = await processor.bypass(LEAVE, leave.id, team["director"].id, notes="Board decision")
            return denied, granted, await leave_status(session, leave.id)

    denied, granted, status = db.run(scenario)
    assert denied.error.code == ErrorCode.UNAUTHORIZED
    assert granted.data.chain_status == ChainStatus.APPROVED
    assert status == RequestStatus.APPROVED


def test_request_without_chain_falls_back(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            leave = await seed.leave_request(session, org, team["employee"])
            processor = ApprovalProcessor(session, notify=False)
            return await processor.process_action(LEAVE, leave.id, team["manager"].id, ApprovalAction.APPROVE)

    result = db.run(scenario)
    assert result.is_success
    assert result.data.chain_exists is False
    assert result.data.step_processed is False
