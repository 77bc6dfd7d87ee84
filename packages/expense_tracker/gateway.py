"""Mutation gateway: create/update/delete against the authoritative store.

Every operation validates locally first and raises
:class:`~expense_tracker.errors.ValidationError` before any remote call when
the input breaks the transaction invariants. Remote failures surface as
:class:`~expense_tracker.errors.UpdateFailed` (``NotFoundError`` passes
through untouched) and are never retried here.

The gateway does not touch any in-memory snapshot. A mutation becomes visible
only when the synchronization channel delivers the next snapshot.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, UpdateFailed, ValidationError
from .logging_setup import get_logger
from .models import DeleteAllResult, Identity, Profile, TransactionDraft, TransactionPatch
from .store import TransactionStore

_logger = get_logger("expense_tracker.gateway")


def _validation_error(e: PydanticValidationError) -> ValidationError:
    fields: list[str] = []
    parts: list[str] = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "record"
        if err["loc"]:
            fields.append(str(err["loc"][0]))
        parts.append(f"{loc}: {err['msg']}")
    return ValidationError("; ".join(parts), fields=fields)


def validate_draft(draft: TransactionDraft | Mapping[str, Any]) -> TransactionDraft:
    if isinstance(draft, TransactionDraft):
        return draft
    try:
        return TransactionDraft.model_validate(dict(draft))
    except PydanticValidationError as e:
        raise _validation_error(e) from e


def validate_patch(partial: TransactionPatch | Mapping[str, Any]) -> TransactionPatch:
    if isinstance(partial, TransactionPatch):
        return partial
    try:
        return TransactionPatch.model_validate(dict(partial))
    except PydanticValidationError as e:
        raise _validation_error(e) from e


class MutationGateway:
    """Issues mutations for one identity's transactions and profile."""

    def __init__(
        self,
        store: TransactionStore,
        uid: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self.uid = uid
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create(self, draft: TransactionDraft | Mapping[str, Any]) -> str:
        """Create a transaction and return the id the store assigned."""

        valid = validate_draft(draft)
        document = valid.to_document(now=self._clock())
        try:
            tx_id = await self._store.add(self.uid, document)
        except Exception as e:
            _logger.error("gateway:create_failed uid=%s error=%s", self.uid, e)
            raise UpdateFailed(f"create failed: {e}") from e
        _logger.info(
            "gateway:created uid=%s id=%s type=%s amount=%s",
            self.uid,
            tx_id,
            valid.type,
            valid.amount,
        )
        return tx_id

    async def update(self, tx_id: str, partial: TransactionPatch | Mapping[str, Any]) -> None:
        """Apply a partial change; ``NotFoundError`` if ``tx_id`` is gone."""

        if not tx_id:
            raise ValidationError("transaction id is required", fields=["id"])
        patch = validate_patch(partial)
        try:
            await self._store.update(self.uid, tx_id, patch.to_document())
        except NotFoundError:
            _logger.warning("gateway:update_missing uid=%s id=%s", self.uid, tx_id)
            raise
        except Exception as e:
            _logger.error("gateway:update_failed uid=%s id=%s error=%s", self.uid, tx_id, e)
            raise UpdateFailed(f"update of {tx_id} failed: {e}") from e
        _logger.info(
            "gateway:updated uid=%s id=%s fields=%s",
            self.uid,
            tx_id,
            ",".join(sorted(patch.model_fields_set)),
        )

    async def delete(self, tx_id: str) -> None:
        """Delete one transaction. Deleting an absent id is not an error."""

        if not tx_id:
            raise ValidationError("transaction id is required", fields=["id"])
        try:
            await self._store.delete(self.uid, tx_id)
        except Exception as e:
            _logger.error("gateway:delete_failed uid=%s id=%s error=%s", self.uid, tx_id, e)
            raise UpdateFailed(f"delete of {tx_id} failed: {e}") from e
        _logger.info("gateway:deleted uid=%s id=%s", self.uid, tx_id)

    async def delete_all(self) -> DeleteAllResult:
        """Enumerate and delete every transaction for the identity.

        Not transactional: each id is deleted on its own, in enumeration
        order, and ids whose deletion the store did not confirm are reported
        in :attr:`DeleteAllResult.unconfirmed` rather than aborting the run.
        """

        try:
            ids = await self._store.list_ids(self.uid)
        except Exception as e:
            raise UpdateFailed(f"could not enumerate transactions: {e}") from e

        deleted: list[str] = []
        unconfirmed: dict[str, BaseException] = {}
        for tx_id in ids:
            try:
                await self._store.delete(self.uid, tx_id)
            except Exception as e:  # noqa: BLE001
                unconfirmed[tx_id] = e
                continue
            deleted.append(tx_id)

        result = DeleteAllResult(deleted=tuple(deleted), unconfirmed=unconfirmed)
        if result.ok:
            _logger.info("gateway:deleted_all uid=%s count=%d", self.uid, len(deleted))
        else:
            _logger.warning(
                "gateway:delete_all_incomplete uid=%s deleted=%d unconfirmed=%s",
                self.uid,
                len(deleted),
                ",".join(result.unconfirmed_ids),
            )
        return result

    async def ensure_profile(self, identity: Identity) -> bool:
        """Create the identity's profile document if it does not exist yet.

        Read-then-write rather than an upsert, so an existing profile is never
        overwritten. Returns ``True`` when a profile was created.
        """

        try:
            existing = await self._store.get_profile(identity.uid)
            if existing is not None:
                return False
            await self._store.set_profile(
                identity.uid, Profile.blank(identity).model_dump(mode="python")
            )
        except Exception as e:
            raise UpdateFailed(f"profile initialization failed: {e}") from e
        _logger.info("gateway:profile_created uid=%s", identity.uid)
        return True


__all__ = ["MutationGateway", "validate_draft", "validate_patch"]
