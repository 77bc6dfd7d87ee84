from __future__ import annotations

import json
import os
from decimal import Decimal
from pathlib import Path

import pytest

from expense_tracker.cache import SCHEMA_VERSION, LocalCacheStore
from expense_tracker.models import Identity, Transaction, TransactionType, parse_timestamp


def _snapshot() -> tuple[Transaction, ...]:
    return (
        Transaction(
            id="a",
            type=TransactionType.INCOME,
            category="Salary",
            amount=Decimal("50000.00"),
            date=parse_timestamp("2025-04-01T09:00:00"),
        ),
        Transaction(
            id="b",
            type=TransactionType.EXPENSE,
            category="Rent",
            amount=Decimal("12000.50"),
            date=None,
        ),
    )


def test_cache_root_comes_from_env(tmp_path: Path):
    cache = LocalCacheStore()
    assert cache.directory == Path(os.environ["ET_CACHE_DIR"]).resolve() / "default"


def test_snapshot_round_trip_preserves_values(tmp_path: Path):
    cache = LocalCacheStore()
    snap = _snapshot()
    cache.write("u1", snap)

    assert cache.snapshot_path.exists()
    assert not (cache.directory / "snapshot.json.tmp").exists()
    restored = cache.read("u1")
    assert restored == snap
    assert restored[1].amount == Decimal("12000.50")


def test_snapshot_for_other_identity_is_a_miss():
    cache = LocalCacheStore()
    cache.write("u1", _snapshot())
    assert cache.read("u2") == ()
    assert len(cache.read()) == 2


def test_missing_or_corrupt_file_reads_empty():
    cache = LocalCacheStore()
    assert cache.read("u1") == ()
    assert cache.read_identity() is None

    cache.directory.mkdir(parents=True, exist_ok=True)
    cache.snapshot_path.write_text("{not json", encoding="utf-8")
    cache.identity_path.write_bytes(b"\xff\xfe\x00")
    assert cache.read("u1") == ()
    assert cache.read_identity() is None


def test_schema_version_mismatch_reads_empty():
    cache = LocalCacheStore()
    cache.write("u1", _snapshot())
    payload = json.loads(cache.snapshot_path.read_text(encoding="utf-8"))
    payload["schema_version"] = SCHEMA_VERSION + 1
    cache.snapshot_path.write_text(json.dumps(payload), encoding="utf-8")
    assert cache.read("u1") == ()


def test_identity_round_trip_and_clear():
    cache = LocalCacheStore()
    ident = Identity(uid="u1", display_name="Ravi Kumar", email="ravi@example.com")
    cache.write_identity(ident)
    cache.write("u1", _snapshot())
    assert cache.read_identity() == ident

    cache.clear()
    assert cache.read_identity() is None
    assert cache.read("u1") == ()
    # clearing an empty cache is fine too
    cache.clear()


def test_namespaces_are_isolated(monkeypatch: pytest.MonkeyPatch):
    a = LocalCacheStore("laptop")
    monkeypatch.setenv("ET_CACHE_NAMESPACE", "phone")
    b = LocalCacheStore()
    assert b.namespace == "phone"

    a.write("u1", _snapshot())
    assert b.read("u1") == ()


@pytest.mark.parametrize("bad", ["..", "a/b", "with space", "."])
def test_invalid_namespace_rejected(bad: str):
    with pytest.raises(ValueError):
        LocalCacheStore(bad)


def test_write_failure_is_swallowed(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    cache = LocalCacheStore(root=blocker)

    cache.write("u1", _snapshot())
    cache.write_identity(Identity(uid="u1"))
    assert cache.read("u1") == ()
    assert cache.read_identity() is None
