from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from expense_tracker.errors import NotFoundError, UpdateFailed, ValidationError
from expense_tracker.gateway import MutationGateway
from expense_tracker.models import Identity, TransactionDraft

from tests.helpers.fakes import FakeTransactionStore

UID = "user-1"
FIXED_NOW = datetime(2025, 6, 15, 9, 30, tzinfo=UTC)


def _gateway(store: FakeTransactionStore) -> MutationGateway:
    return MutationGateway(store, UID, clock=lambda: FIXED_NOW)


# ---- create -----------------------------------------------------------------------


def test_create_with_negative_amount_fails_before_any_remote_call():
    store = FakeTransactionStore()

    async def run():
        with pytest.raises(ValidationError) as ei:
            await _gateway(store).create({"type": "expense", "category": "Food", "amount": -5})
        assert "amount" in ei.value.fields

    asyncio.run(run())
    assert store.remote_calls == []


@pytest.mark.parametrize(
    "draft",
    [
        {"type": "expense", "category": "Food", "amount": 0},
        {"type": "expense", "category": "Food", "amount": "abc"},
        {"type": "expense", "category": "Food", "amount": float("inf")},
        {"type": "expense", "category": "Food", "amount": float("nan")},
        {"type": "expense", "category": "Food", "amount": True},
        {"type": "expense", "category": "Food", "amount": "0.001"},
        {"type": "expense", "category": "   ", "amount": 5},
        {"type": "transfer", "category": "Food", "amount": 5},
        {"type": "expense", "category": "Food"},
        {"type": "expense", "category": "Food", "amount": 5, "date": "not-a-date"},
        {"type": "expense", "category": "Food", "amount": 5, "note": "extra"},
    ],
)
def test_create_rejects_invalid_drafts(draft):
    store = FakeTransactionStore()

    async def run():
        with pytest.raises(ValidationError):
            await _gateway(store).create(draft)

    asyncio.run(run())
    assert store.remote_calls == []


def test_create_trims_category_defaults_date_and_returns_id():
    store = FakeTransactionStore()

    async def run():
        return await _gateway(store).create(
            {"type": "income", "category": "  Salary ", "amount": "1000"}
        )

    tx_id = asyncio.run(run())
    assert tx_id == "tx1"
    (call,) = store.remote_calls
    assert call[0] == "add"
    doc = call[2]
    assert doc == {
        "type": "income",
        "category": "Salary",
        "amount": Decimal("1000.00"),
        "date": FIXED_NOW.isoformat(),
    }


def test_create_keeps_caller_date_and_rounds_to_cents():
    store = FakeTransactionStore()
    draft = TransactionDraft(type="savings", category="RD", amount="10.005", date="2025-01-31")

    asyncio.run(_gateway(store).create(draft))
    doc = store.remote_calls[0][2]
    assert doc["amount"] == Decimal("10.01")
    assert doc["date"] == "2025-01-31T00:00:00"


def test_create_wraps_remote_rejection():
    store = FakeTransactionStore()
    store.fail_next["add"] = RuntimeError("permission denied")

    async def run():
        with pytest.raises(UpdateFailed) as ei:
            await _gateway(store).create({"type": "expense", "category": "Food", "amount": 5})
        assert isinstance(ei.value.__cause__, RuntimeError)

    asyncio.run(run())


# ---- update -----------------------------------------------------------------------


def test_update_coerces_amount_to_number():
    store = FakeTransactionStore()
    (tx_id,) = store.seed(UID, {"type": "expense", "category": "Food", "amount": Decimal("5")})

    asyncio.run(_gateway(store).update(tx_id, {"amount": "42.5"}))
    assert store.docs[UID][tx_id]["amount"] == Decimal("42.50")
    assert store.remote_calls[-1] == ("update", UID, tx_id, {"amount": Decimal("42.50")})


def test_update_missing_record_raises_not_found():
    store = FakeTransactionStore()

    async def run():
        with pytest.raises(NotFoundError):
            await _gateway(store).update("nope", {"category": "Rent"})

    asyncio.run(run())


@pytest.mark.parametrize(
    "partial",
    [
        {},
        {"amount": -1},
        {"amount": None},
        {"category": ""},
        {"type": "bonus"},
        {"id": "other"},
    ],
)
def test_update_rejects_invalid_patches(partial):
    store = FakeTransactionStore()
    (tx_id,) = store.seed(UID, {"type": "expense", "category": "Food", "amount": Decimal("5")})

    async def run():
        with pytest.raises(ValidationError):
            await _gateway(store).update(tx_id, partial)

    asyncio.run(run())
    assert store.remote_calls == []


def test_update_wraps_other_remote_failures():
    store = FakeTransactionStore()
    (tx_id,) = store.seed(UID, {"type": "expense", "category": "Food", "amount": Decimal("5")})
    store.fail_next["update"] = OSError("network down")

    async def run():
        with pytest.raises(UpdateFailed):
            await _gateway(store).update(tx_id, {"type": "income"})

    asyncio.run(run())
    assert store.docs[UID][tx_id]["type"] == "expense"


# ---- delete -----------------------------------------------------------------------


def test_delete_absent_id_is_not_an_error():
    store = FakeTransactionStore()
    asyncio.run(_gateway(store).delete("ghost"))
    assert store.remote_calls == [("delete", UID, "ghost")]


def test_delete_failure_passes_through_as_update_failed():
    store = FakeTransactionStore()
    store.fail_next["delete"] = RuntimeError("rejected")

    async def run():
        with pytest.raises(UpdateFailed):
            await _gateway(store).delete("t1")

    asyncio.run(run())


def test_delete_all_reports_exactly_the_unconfirmed_ids():
    store = FakeTransactionStore()
    ids = store.seed(
        UID,
        {"type": "expense", "category": "A", "amount": Decimal("1"), "date": "2025-01-01"},
        {"type": "expense", "category": "B", "amount": Decimal("2"), "date": "2025-01-02"},
        {"type": "expense", "category": "C", "amount": Decimal("3"), "date": "2025-01-03"},
    )
    store.fail_delete_ids[ids[1]] = RuntimeError("backend timeout")

    result = asyncio.run(_gateway(store).delete_all())

    assert not result.ok
    assert result.unconfirmed_ids == (ids[1],)
    assert result.deleted == (ids[0], ids[2])
    assert list(store.docs[UID]) == [ids[1]]


def test_delete_all_success_and_enumeration_failure():
    store = FakeTransactionStore()
    store.seed(UID, {"type": "income", "category": "A", "amount": Decimal("1")})

    result = asyncio.run(_gateway(store).delete_all())
    assert result.ok
    assert store.docs[UID] == {}

    store.fail_next["list_ids"] = RuntimeError("unavailable")

    async def run():
        with pytest.raises(UpdateFailed):
            await _gateway(store).delete_all()

    asyncio.run(run())


# ---- profile ------------------------------------------------------------------------


def test_ensure_profile_reads_then_writes_only_when_absent():
    store = FakeTransactionStore()
    ident = Identity(uid=UID, display_name="Asha Rao", email="asha@example.com")

    async def run():
        gw = _gateway(store)
        return await gw.ensure_profile(ident), await gw.ensure_profile(ident)

    first, second = asyncio.run(run())
    assert (first, second) == (True, False)
    writes = [c for c in store.calls if c[0] == "set_profile"]
    assert len(writes) == 1
    profile = writes[0][2]
    assert profile["display_name"] == "Asha Rao"
    assert profile["balance"] == 0
    assert profile["totals"] == {
        "income": Decimal("0"),
        "expenses": Decimal("0"),
        "savings": Decimal("0"),
    }
