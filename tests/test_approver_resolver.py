from datetime import timedelta

from approval_engine.core.exceptions import RepositoryError
from approval_engine.models import ApprovalStep, ApproverDelegation
from approval_engine.models.base.enums import ApprovalModule, ApprovalRole, ApprovalStepStatus
from approval_engine.services.approval.approver_resolver import ApproverResolver
from approval_engine.utils.date_utils import utcnow


def pending_step(org, role):
    return ApprovalStep(
        tenant_id=org.id,
        entity_type=ApprovalModule.LEAVE_REQUEST,
        entity_id="leave-1",
        level_order=1,
        required_role=role,
        status=ApprovalStepStatus.PENDING,
    )


def test_roles_resolve_to_members(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            finance = await seed.member(session, org, "Fay Finance", has_finance_access=True)
            resolver = ApproverResolver(session)
            resolved = {
                role: await resolver.resolve_approvers(org.id, role, team["employee"].id)
                for role in ApprovalRole
            }
            return resolved, team, finance

    resolved, team, finance = db.run(scenario)
    assert resolved[ApprovalRole.MANAGER] == {team["manager"].id}
    assert resolved[ApprovalRole.HR_MANAGER] == {team["hr"].id}
    assert resolved[ApprovalRole.FINANCE_MANAGER] == {finance.id}
    assert resolved[ApprovalRole.OPERATIONS_MANAGER] == set()
    assert resolved[ApprovalRole.DIRECTOR] == {team["director"].id}
    assert resolved[ApprovalRole.ADMIN] == {team["director"].id}


def test_manager_needs_a_requester(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            await seed.team(session, org)
            return await ApproverResolver(session).resolve_approvers(org.id, ApprovalRole.MANAGER)

    assert db.run(scenario) == set()


def test_directors_fall_back_to_owners(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            owner = await seed.member(session, org, "Olu Owner", is_owner=True)
            found = await ApproverResolver(session).resolve_approvers(org.id, ApprovalRole.DIRECTOR)
            return found, owner

    found, owner = db.run(scenario)
    assert found == {owner.id}


def test_deleted_members_are_not_approvers(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            await seed.member(session, org, "Gone HR", has_hr_access=True, is_deleted=True)
            return await ApproverResolver(session).resolve_approvers(org.id, ApprovalRole.HR_MANAGER)

    assert db.run(scenario) == set()


def test_lookup_failure_yields_no_approvers(db, seed, monkeypatch):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            resolver = ApproverResolver(session)

            async def broken(*args, **kwargs):
                raise RepositoryError("connection lost")

            monkeypatch.setattr(resolver.members, "find_ids_with_flag", broken)
            return await resolver.resolve_approvers(org.id, ApprovalRole.HR_MANAGER)

    assert db.run(scenario) == set()


def test_eligibility_rules(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            explicit = await seed.member(session, org, "Rita Role", approval_role=ApprovalRole.HR_MANAGER)
            other_org = await seed.organization(session)
            outsider = await seed.member(session, other_org, "Out Sider", is_admin=True)

            resolver = ApproverResolver(session)
            hr_step = pending_step(org, ApprovalRole.HR_MANAGER)
            requester = team["employee"].id
            return {
                "hr": await resolver.can_member_approve(team["hr"].id, hr_step, requester),
                "admin": await resolver.can_member_approve(team["director"].id, hr_step, requester),
                "explicit": await resolver.can_member_approve(explicit.id, hr_step, requester),
                "manager": await resolver.can_member_approve(team["manager"].id, hr_step, requester),
                "self": await resolver.can_member_approve(team["hr"].id, hr_step, team["hr"].id),
                "outsider": await resolver.can_member_approve(outsider.id, hr_step, requester),
                "unknown": await resolver.can_member_approve("nobody", hr_step, requester),
            }

    result = db.run(scenario)
    assert result["hr"].can_approve is True
    assert result["admin"].can_approve is True
    assert result["explicit"].can_approve is True
    assert result["manager"].can_approve is False
    assert result["manager"].reason == "Requires HR_MANAGER role or delegation"
    assert result["self"].reason == "Requesters cannot approve their own request"
    assert result["outsider"].reason == "Member not found"
    assert result["unknown"].reason == "Member not found"


def test_active_delegation_grants_approval(db, seed):
    async def scenario(factory):
        async with factory() as session:
            org = await seed.organization(session)
            team = await seed.team(session, org)
            deputy = await seed.member(session, org, "Dee Deputy")
            expired_deputy = await seed.member(session, org, "Ex Deputy")
            now = utcnow()
            session.add_all([
                ApproverDelegation(
                    tenant_id=org.id,
                    delegator_id=team["hr"].id,
                    delegatee_id=deputy.id,
                    start_date=now - timedelta(days=1),
                    end_date=now + timedelta(days=5),
                    reason="Annual leave",
                ),
                ApproverDelegation(
                    tenant_id=org.id,
                    delegator_id=team["hr"].id,
                    delegatee_id=expired_deputy.id,
                    start_date=now - timedelta(days=10),
                    end_date=now - timedelta(days=2),
                ),
            ])
            await session.commit()

            resolver = ApproverResolver(session)
            step = pending_step(org, ApprovalRole.HR_MANAGER)
            return (
                await resolver.can_member_approve(deputy.id, step, team["employee"].id),
                await resolver.can_member_approve(expired_deputy.id, step, team["employee"].id),
            )

    active, expired = db.run(scenario)
    assert active.can_approve is True
    assert active.via_delegation is True
    assert expired.can_approve is False
