from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from password_recovery.errors import CodeNotFoundOrExpired
from password_recovery.models.reset_code import ResetCode
from password_recovery.services import reset_codes
from password_recovery.services.reset_codes import ResetCodeLedger, generate_code
from tests.conftest import create_user

pytestmark = pytest.mark.anyio

ISSUED_AT = datetime(2026, 3, 1, 12, 0, 0)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_generate_code_is_eight_digits():
    for _ in range(50):
        code = generate_code()
        assert len(code) == 8
        assert code.isdigit()


def test_generate_code_keeps_leading_zeros(monkeypatch):
    monkeypatch.setattr(reset_codes.secrets, "randbelow", lambda upper: 42)
    assert generate_code() == "00000042"


async def test_issue_sets_expiration_from_ttl(session_factory):
    user = await create_user(session_factory, "alice@example.com")
    async with session_factory() as session:
        ledger = ResetCodeLedger(session, now=Clock(ISSUED_AT), ttl=timedelta(minutes=5))
        issued = await ledger.issue(user.id)
        await session.commit()

    assert issued.user_id == user.id
    assert issued.created_at == ISSUED_AT
    assert issued.expiration_time == ISSUED_AT + timedelta(minutes=5)


async def test_code_expires_exactly_at_expiration_time(session_factory):
    user = await create_user(session_factory, "alice@example.com")
    clock = Clock(ISSUED_AT)
    async with session_factory() as session:
        ledger = ResetCodeLedger(session, now=clock, ttl=timedelta(minutes=5))
        issued = await ledger.issue(user.id)
        await session.commit()

        clock.now = ISSUED_AT + timedelta(minutes=5) - timedelta(seconds=1)
        found = await ledger.lookup_valid(issued.code)
        assert found.id == issued.id

        clock.now = ISSUED_AT + timedelta(minutes=5)
        with pytest.raises(CodeNotFoundOrExpired):
            await ledger.lookup_valid(issued.code)


async def test_unknown_and_expired_codes_raise_same_error(session_factory):
    user = await create_user(session_factory, "alice@example.com")
    async with session_factory() as session:
        session.add(ResetCode(
            user_id=user.id,
            code="11111111",
            expiration_time=ISSUED_AT - timedelta(minutes=1),
            created_at=ISSUED_AT - timedelta(minutes=6),
        ))
        await session.commit()

        ledger = ResetCodeLedger(session, now=Clock(ISSUED_AT))
        with pytest.raises(CodeNotFoundOrExpired) as expired:
            await ledger.lookup_valid("11111111")
        with pytest.raises(CodeNotFoundOrExpired) as missing:
            await ledger.lookup_valid("22222222")

    assert expired.value.message == missing.value.message


async def test_issuing_again_keeps_earlier_codes_valid(session_factory, monkeypatch):
    user = await create_user(session_factory, "alice@example.com")
    codes = iter([12345678, 87654321])
    monkeypatch.setattr(reset_codes.secrets, "randbelow", lambda upper: next(codes))

    async with session_factory() as session:
        ledger = ResetCodeLedger(session, now=Clock(ISSUED_AT))
        first = await ledger.issue(user.id)
        second = await ledger.issue(user.id)
        await session.commit()

        assert (await ledger.lookup_valid(first.code)).id == first.id
        assert (await ledger.lookup_valid(second.code)).id == second.id


async def test_consume_removes_code_and_is_idempotent(session_factory):
    user = await create_user(session_factory, "alice@example.com")
    async with session_factory() as session:
        ledger = ResetCodeLedger(session, now=Clock(ISSUED_AT))
        issued = await ledger.issue(user.id)
        await session.commit()

        await ledger.consume(issued.code)
        await ledger.consume(issued.code)
        await ledger.consume("00000000")

        with pytest.raises(CodeNotFoundOrExpired):
            await ledger.lookup_valid(issued.code)

    async with session_factory() as session:
        result = await session.execute(select(ResetCode))
        assert result.scalars().all() == []


async def test_consume_scoped_to_owner_keeps_other_accounts_code(session_factory):
    alice = await create_user(session_factory, "alice@example.com")
    bob = await create_user(session_factory, "bob@example.com")
    async with session_factory() as session:
        for user in (alice, bob):
            session.add(ResetCode(
                user_id=user.id,
                code="33333333",
                expiration_time=ISSUED_AT + timedelta(minutes=5),
                created_at=ISSUED_AT,
            ))
        await session.commit()

        ledger = ResetCodeLedger(session, now=Clock(ISSUED_AT))
        await ledger.consume("33333333", user_id=alice.id)

    async with session_factory() as session:
        result = await session.execute(select(ResetCode))
        assert [row.user_id for row in result.scalars().all()] == [bob.id]
