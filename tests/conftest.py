"""Pytest configuration for test isolation.

The local cache store writes under ``./.cache/expense_tracker`` by default and
the ``db`` client keeps one process-wide engine. Left alone, both leak state
between tests (a snapshot cached by one test seeds the next one's session,
and the engine stays bound to the first test's database URL).

Autouse fixtures point the cache root at the test's own temporary directory
and dispose the shared engine around every test.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import reset_engine


@pytest.fixture(autouse=True)
def _isolate_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test cache root (``ET_CACHE_DIR``) and a clean environment."""

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("ET_CACHE_DIR", os.fspath(cache_root))
    for var in ("ET_CACHE_NAMESPACE", "ET_USER_ID", "ET_USER_NAME", "ET_USER_EMAIL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _fresh_engine() -> Iterator[None]:
    reset_engine()
    yield
    reset_engine()
