"""Local cache store: last-known snapshot and minimal identity record.

The cache exists only so a cold start does not render a blank dashboard. It
is never a source of truth and is never consulted to decide whether a
mutation succeeded.

Cache layout (relative to the cache root, default ``./.cache/expense_tracker``):

  ``<cache_root>/<namespace>/snapshot.json``
  ``<cache_root>/<namespace>/identity.json``

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
Every public method is total: I/O and decode failures are logged and turned
into an empty result (reads) or a no-op (writes).
"""

from __future__ import annotations

import contextlib
import json
import os
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .logging_setup import get_logger
from .models import Identity, Snapshot, Transaction

# Bump only when the on-disk JSON shape changes.
SCHEMA_VERSION: int = 1

_NAMESPACE_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_logger = get_logger("expense_tracker.cache")


class SnapshotCacheFile(BaseModel):
    """Top-level schema for ``snapshot.json``."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int
    uid: str
    transactions: list[Transaction]


class IdentityCacheFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int
    identity: Identity


def _get_cache_root() -> Path:
    """Return the cache root directory.

    Default: ``./.cache/expense_tracker`` under the current working directory.
    Override: ``ET_CACHE_DIR`` environment variable (absolute or relative).
    """

    root = os.getenv("ET_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache" / "expense_tracker").resolve()


def _validate_namespace(namespace: str) -> str:
    # Namespaces become directory names; keep them to a single safe segment.
    if not _NAMESPACE_RE.fullmatch(namespace) or namespace in {".", ".."}:
        raise ValueError(f"Invalid cache namespace: {namespace!r}")
    return namespace


class LocalCacheStore:
    """Synchronous key/value slot per installation namespace."""

    def __init__(self, namespace: str | None = None, *, root: Path | None = None) -> None:
        ns = namespace or os.getenv("ET_CACHE_NAMESPACE") or "default"
        self.namespace = _validate_namespace(ns)
        self._root = root

    @property
    def directory(self) -> Path:
        return (self._root or _get_cache_root()) / self.namespace

    @property
    def snapshot_path(self) -> Path:
        return self.directory / "snapshot.json"

    @property
    def identity_path(self) -> Path:
        return self.directory / "identity.json"

    # ---- snapshot -----------------------------------------------------------

    def read(self, uid: str | None = None) -> Snapshot:
        """Return the cached snapshot, or ``()`` when nothing usable is cached.

        When ``uid`` is given, a snapshot cached for another identity counts
        as a miss.
        """

        parsed = self._load(self.snapshot_path, SnapshotCacheFile)
        if parsed is None or parsed.schema_version != SCHEMA_VERSION:
            return ()
        if uid is not None and parsed.uid != uid:
            return ()
        return tuple(parsed.transactions)

    def write(self, uid: str, snapshot: Snapshot) -> None:
        """Replace the cached snapshot wholesale."""

        payload = SnapshotCacheFile(
            schema_version=SCHEMA_VERSION, uid=uid, transactions=list(snapshot)
        )
        self._store(self.snapshot_path, payload)

    # ---- identity -----------------------------------------------------------

    def read_identity(self) -> Identity | None:
        parsed = self._load(self.identity_path, IdentityCacheFile)
        if parsed is None or parsed.schema_version != SCHEMA_VERSION:
            return None
        return parsed.identity

    def write_identity(self, identity: Identity) -> None:
        self._store(
            self.identity_path,
            IdentityCacheFile(schema_version=SCHEMA_VERSION, identity=identity),
        )

    def clear(self) -> None:
        """Remove both the cached snapshot and the cached identity."""

        for path in (self.snapshot_path, self.identity_path):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                _logger.warning("cache:clear_failed path=%s", os.fspath(path), exc_info=True)

    # ---- file I/O -----------------------------------------------------------

    def _load[M: BaseModel](self, path: Path, model: type[M]) -> M | None:
        try:
            if not path.exists():
                return None
            text = path.read_text(encoding="utf-8")
            return model.model_validate_json(text)
        except (OSError, UnicodeDecodeError, PydanticValidationError):
            _logger.debug(
                "cache:read_failed; treating as empty path=%s",
                os.fspath(path),
                exc_info=True,
            )
            return None

    def _store(self, path: Path, payload: BaseModel) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(
                    payload.model_dump(mode="json"), ensure_ascii=False, separators=(",", ":")
                ),
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            _logger.warning("cache:write_failed path=%s", os.fspath(path), exc_info=True)


__all__ = ["LocalCacheStore", "SCHEMA_VERSION"]
