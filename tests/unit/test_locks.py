"""Unit tests for keyed locks and the ledger unit of work."""

import asyncio
import uuid
from datetime import datetime, timezone

import pytest
from services.giftcard_service.errors import LockContendedError
from services.giftcard_service.models import GiftCardTransaction
from services.giftcard_service.money import Money
from services.giftcard_service.services import ledger_store
from services.giftcard_service.services.locks import (
    KeyedLockManager,
    card_lock_key,
    issuance_lock_key,
)
from services.giftcard_service.services.redemption import redeem_gift_card
from sqlalchemy import func, select
from tests.factories import issue_card


@pytest.mark.unit
def test_lock_keys():
    card_id = uuid.UUID("00000000-0000-0000-0000-000000000001")
    assert card_lock_key(card_id) == f"gift_card:{card_id}"
    moment = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
    assert issuance_lock_key("agent-1", moment) == "issuance:agent-1:2026-03"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_waiter_times_out_with_contended():
    manager = KeyedLockManager(timeout=0.05)

    async with manager.hold("gift_card:abc"):
        assert manager.is_locked("gift_card:abc")
        with pytest.raises(LockContendedError) as exc_info:
            async with manager.hold("gift_card:abc"):
                pass
        assert exc_info.value.context["lock_key"] == "gift_card:abc"

    assert not manager.is_locked("gift_card:abc")
    # Registry is emptied once nobody holds or waits
    assert manager._locks == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_different_keys_do_not_block_each_other():
    manager = KeyedLockManager(timeout=0.05)

    async with manager.hold("gift_card:a"):
        async with manager.hold("gift_card:b"):
            assert manager.is_locked("gift_card:a")
            assert manager.is_locked("gift_card:b")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_key_is_serialized():
    manager = KeyedLockManager(timeout=1.0)
    events = []

    async def worker(name):
        async with manager.hold("gift_card:x"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(worker("first"), worker("second"))

    assert events in (
        ["first-in", "first-out", "second-in", "second-out"],
        ["second-in", "second-out", "first-in", "first-out"],
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_fails_contended_while_card_is_locked(db_session, monkeypatch):
    card = await issue_card(db_session, amount="20.00", issuer_id="agent-1")
    manager = KeyedLockManager(timeout=0.05)
    monkeypatch.setattr(ledger_store, "get_lock_manager", lambda: manager)

    async with manager.hold(card_lock_key(card.id)):
        with pytest.raises(LockContendedError):
            await redeem_gift_card(
                db_session, code=card.code, amount=Money("5.00"), actor_id="agent-1"
            )

    await db_session.refresh(card)
    assert card.remaining_balance == Money("20.00")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unit_rolls_back_everything_on_failure(db_session, monkeypatch):
    card = await issue_card(db_session, amount="20.00", issuer_id="agent-1")
    original_append = ledger_store.append_entry

    def append_then_fail(*args, **kwargs):
        original_append(*args, **kwargs)
        raise RuntimeError("storage failure mid-commit")

    monkeypatch.setattr(ledger_store, "append_entry", append_then_fail)

    with pytest.raises(RuntimeError):
        await redeem_gift_card(
            db_session, code=card.code, amount=Money("5.00"), actor_id="agent-1"
        )

    await db_session.refresh(card)
    assert card.remaining_balance == Money("20.00")
    entries = await db_session.execute(
        select(func.count(GiftCardTransaction.id)).where(
            GiftCardTransaction.gift_card_id == card.id
        )
    )
    # Only the purchase entry survives
    assert entries.scalar_one() == 1
