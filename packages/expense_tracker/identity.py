"""Device-local identity provider for command-line use.

There is no popup or redirect in a terminal: the identity comes from
configuration (``ET_USER_ID``/``ET_USER_NAME``/``ET_USER_EMAIL`` or explicit
arguments). Signing in "remembers" it in the local cache so later runs can
restore it as a cached credential; signing out forgets it.
"""

from __future__ import annotations

import os
from collections.abc import Callable

from .cache import LocalCacheStore
from .errors import AuthError
from .models import Identity
from .session import IdentityCallback, SignInMethod


def identity_from_env() -> Identity | None:
    uid = (os.getenv("ET_USER_ID") or "").strip()
    if not uid:
        return None
    return Identity(
        uid=uid,
        display_name=os.getenv("ET_USER_NAME") or None,
        email=os.getenv("ET_USER_EMAIL") or None,
    )


class LocalIdentityProvider:
    """Implements :class:`~expense_tracker.session.IdentityProvider` locally."""

    def __init__(self, cache: LocalCacheStore, configured: Identity | None = None) -> None:
        self._cache = cache
        self._configured = configured
        self._current: Identity | None = None
        self._watchers: list[IdentityCallback] = []

    async def current_identity(self) -> Identity | None:
        remembered = self._cache.read_identity()
        if remembered is not None and (
            self._configured is None or remembered.uid == self._configured.uid
        ):
            self._current = remembered
        return self._current

    async def sign_in(self, *, method: SignInMethod = "popup") -> Identity:
        # ``method`` only matters to interactive providers.
        del method
        if self._configured is None:
            raise AuthError(
                "No identity configured; pass --user-id or set ET_USER_ID",
                code="no-credentials",
            )
        self._set(self._configured)
        return self._configured

    async def sign_out(self) -> None:
        self._set(None)

    def watch(self, callback: IdentityCallback) -> Callable[[], None]:
        self._watchers.append(callback)

        def _unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return _unwatch

    def _set(self, identity: Identity | None) -> None:
        changed = (identity.uid if identity else None) != (
            self._current.uid if self._current else None
        )
        self._current = identity
        if changed:
            for cb in list(self._watchers):
                cb(identity)


__all__ = ["LocalIdentityProvider", "identity_from_env"]
