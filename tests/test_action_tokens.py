from datetime import datetime, timedelta

from approval_engine.config.settings import settings
from approval_engine.models.base.enums import ApprovalAction, ApprovalModule
from approval_engine.schemas.whatsapp.tokens import TokenError
from approval_engine.services.whatsapp.action_token_service import ActionTokenService

SPEND = ApprovalModule.SPEND_REQUEST
ISSUED_AT = datetime(2026, 10, 19, 9, 0, 0)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_token_format_and_payload(db):
    async def scenario(factory):
        async with factory() as session:
            tokens = ActionTokenService(session)
            pair = await tokens.issue_pair("tenant-1", SPEND, "spend-1", "approver-x")
            approve = await tokens.validate(pair.approve_token)
            reject = await tokens.validate(pair.reject_token)
            return pair, approve, reject

    pair, approve, reject = db.run(scenario)
    token_id, _, signature = pair.approve_token.partition(":")
    assert len(token_id) == 32
    assert len(signature) == settings.ACTION_TOKEN_SIGNATURE_LENGTH
    assert pair.approve_token != pair.reject_token
    assert approve.valid and approve.payload.action == ApprovalAction.APPROVE
    assert reject.valid and reject.payload.action == ApprovalAction.REJECT
    assert approve.payload.approver_id == "approver-x"
    assert approve.payload.entity_id == "spend-1"


def test_token_is_single_use(db):
    async def scenario(factory):
        async with factory() as session:
            tokens = ActionTokenService(session)
            token = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            first = await tokens.validate_and_consume(token)
            second = await tokens.validate_and_consume(token)
            return first, second

    first, second = db.run(scenario)
    assert first.valid is True
    assert second.valid is False
    assert second.error == TokenError.ALREADY_USED


def test_token_expires_after_ttl(db):
    async def scenario(factory):
        clock = FrozenClock(ISSUED_AT)
        async with factory() as session:
            tokens = ActionTokenService(session, clock=clock)
            token = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")

            clock.advance(minutes=settings.ACTION_TOKEN_TTL_MINUTES)
            at_ttl = await tokens.validate(token)
            clock.advance(seconds=1)
            past_ttl = await tokens.validate_and_consume(token)
            return at_ttl, past_ttl

    at_ttl, past_ttl = db.run(scenario)
    assert at_ttl.valid is True
    assert past_ttl.valid is False
    assert past_ttl.error == TokenError.EXPIRED
    assert past_ttl.error.value == "Token expired"


def test_unknown_and_tampered_tokens(db):
    async def scenario(factory):
        async with factory() as session:
            tokens = ActionTokenService(session)
            token = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            tampered = token[:-1] + ("0" if token[-1] != "0" else "1")
            return await tokens.validate("deadbeef:cafe"), await tokens.validate(tampered)

    unknown, tampered = db.run(scenario)
    assert unknown.error == TokenError.NOT_FOUND
    assert tampered.error == TokenError.NOT_FOUND


def test_signature_is_checked_against_server_key(db):
    async def scenario(factory):
        async with factory() as session:
            issuer = ActionTokenService(session, signing_key="old-key")
            token = await issuer.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            verifier = ActionTokenService(session, signing_key="rotated-key")
            return await verifier.validate_and_consume(token), await issuer.validate(token)

    rejected, still_unused = db.run(scenario)
    assert rejected.error == TokenError.INVALID_SIGNATURE
    assert still_unused.valid is True


def test_concurrent_consumption_has_one_winner(db):
    async def scenario(factory):
        async with factory() as session:
            tokens = ActionTokenService(session)
            token = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            original = tokens.tokens.consume_if_unused

            async def consume_after_competitor(token_pk, used_at):
                # The other webhook delivery consumes first on its own session.
                async with factory() as other:
                    competitor = await ActionTokenService(other).validate_and_consume(token)
                assert competitor.valid is True
                return await original(token_pk, used_at)

            tokens.tokens.consume_if_unused = consume_after_competitor
            return await tokens.validate_and_consume(token)

    loser = db.run(scenario)
    assert loser.valid is False
    assert loser.error == TokenError.CONCURRENTLY_CONSUMED


def test_invalidate_for_entity_retires_outstanding_tokens(db):
    async def scenario(factory):
        async with factory() as session:
            tokens = ActionTokenService(session)
            pair = await tokens.issue_pair("tenant-1", SPEND, "spend-1", "approver-x")
            other = await tokens.issue_pair("tenant-1", SPEND, "spend-2", "approver-x")
            invalidated = await tokens.invalidate_for_entity(SPEND, "spend-1")
            return (
                invalidated,
                await tokens.validate_and_consume(pair.approve_token),
                await tokens.validate(other.approve_token),
            )

    invalidated, retired, untouched = db.run(scenario)
    assert invalidated == 2
    assert retired.valid is False
    assert retired.error.value == "Token already used"
    assert untouched.valid is True


def test_cleanup_removes_expired_tokens(db):
    async def scenario(factory):
        clock = FrozenClock(ISSUED_AT)
        async with factory() as session:
            tokens = ActionTokenService(session, clock=clock)
            stale = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            clock.advance(hours=1)
            fresh = await tokens.issue("tenant-1", SPEND, "spend-2", ApprovalAction.APPROVE, "approver-x")
            deleted = await tokens.cleanup_expired()
            return deleted, await tokens.validate(stale), await tokens.validate(fresh)

    deleted, stale, fresh = db.run(scenario)
    assert deleted == 1
    assert stale.error == TokenError.NOT_FOUND
    assert fresh.valid is True


def test_cleanup_keeps_used_tokens_for_a_day(db):
    async def scenario(factory):
        clock = FrozenClock(ISSUED_AT)
        async with factory() as session:
            # Long-lived so only the used-token retention applies.
            tokens = ActionTokenService(session, ttl_minutes=48 * 60, clock=clock)
            used = await tokens.issue("tenant-1", SPEND, "spend-1", ApprovalAction.APPROVE, "approver-x")
            unused = await tokens.issue("tenant-1", SPEND, "spend-2", ApprovalAction.APPROVE, "approver-x")
            await tokens.validate_and_consume(used)

            clock.advance(hours=23)
            early = await tokens.cleanup_expired()
            retained = await tokens.validate(used)

            clock.advance(hours=2)
            late = await tokens.cleanup_expired()
            return early, retained, late, await tokens.validate(used), await tokens.validate(unused)

    early, retained, late, purged, unused = db.run(scenario)
    assert (early, late) == (0, 1)
    assert retained.error == TokenError.ALREADY_USED
    assert purged.error == TokenError.NOT_FOUND
    assert unused.valid is True
