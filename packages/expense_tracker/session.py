"""Session gate and the per-identity tracker session it owns.

``SessionGate`` is the authentication state machine::

    unauthenticated -> authenticating -> authenticated
                             |
                             +-> error

It owns at most one :class:`TrackerSession`, created when an identity is
authenticated and torn down on sign-out or identity change. The tracker
session is the single owner of the in-memory snapshot for its identity:
views that need the figures register listeners on it rather than opening
subscriptions of their own.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Literal, Protocol

from .analytics import derive
from .cache import LocalCacheStore
from .errors import AuthError, SubscriptionError, UpdateFailed
from .gateway import MutationGateway
from .logging_setup import get_logger
from .models import DerivedAnalytics, Identity, Snapshot
from .store import TransactionStore
from .sync import SyncChannel

type SignInMethod = Literal["popup", "redirect"]
type IdentityCallback = Callable[[Identity | None], None]
type SnapshotListener = Callable[[Snapshot, DerivedAnalytics], None]

_logger = get_logger("expense_tracker.session")

_ACCOUNT_EXISTS_CODE = "account-exists-with-different-credential"
_ACCOUNT_EXISTS_MESSAGE = (
    "Account exists with a different sign-in method. "
    "Use the original provider and link accounts."
)


class IdentityProvider(Protocol):
    """External identity provider."""

    async def current_identity(self) -> Identity | None:
        """Resolve a cached credential, if the provider has one."""
        ...

    async def sign_in(self, *, method: SignInMethod = "popup") -> Identity:
        """Interactive sign-in; raises :class:`AuthError` on failure."""
        ...

    async def sign_out(self) -> None: ...

    def watch(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register for identity changes; returns an unsubscribe function."""
        ...


class AuthState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class TrackerSession:
    """Owns one identity's snapshot, derived figures, channel and gateway.

    Lifecycle: :meth:`start` seeds the snapshot from the local cache (the only
    cache read) and opens the channel; every delivery overwrites the cache
    and recomputes the analytics; :meth:`close` cancels the channel.
    """

    def __init__(self, identity: Identity, store: TransactionStore, cache: LocalCacheStore) -> None:
        self.identity = identity
        self.gateway = MutationGateway(store, identity.uid)
        self._cache = cache
        self._channel = SyncChannel(
            store, on_snapshot=self._on_snapshot, on_failure=self._on_failure
        )
        self.snapshot: Snapshot = ()
        self.analytics: DerivedAnalytics = derive(())
        self.failure: SubscriptionError | None = None
        self._listeners: list[SnapshotListener] = []
        self._synced: asyncio.Event | None = None
        self._closed = False

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def live(self) -> bool:
        return self._channel.active

    def start(self) -> None:
        self._synced = asyncio.Event()
        seed = self._cache.read(self.uid)
        if seed:
            _logger.debug("session:seeded_from_cache uid=%s count=%d", self.uid, len(seed))
            self._apply(seed)
        self._channel.open(self.uid)

    def close(self) -> None:
        """Cancel the channel; no listener is called after this returns."""

        self._closed = True
        self._channel.cancel()

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a view; it is called immediately with the current figures."""

        self._listeners.append(listener)
        listener(self.snapshot, self.analytics)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait_synced(self) -> Snapshot:
        """Wait for the first live delivery; raises if the channel failed."""

        if self._synced is None:
            raise RuntimeError("session not started")
        await self._synced.wait()
        if self.failure is not None:
            raise self.failure
        return self.snapshot

    def _apply(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self.analytics = derive(snapshot)
        for listener in list(self._listeners):
            listener(self.snapshot, self.analytics)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._closed:
            return
        self._cache.write(self.uid, snapshot)
        self._apply(snapshot)
        if self._synced is not None:
            self._synced.set()

    def _on_failure(self, err: SubscriptionError) -> None:
        # The last delivered snapshot stays authoritative.
        self.failure = err
        if self._synced is not None:
            self._synced.set()


class SessionGate:
    """Authentication state machine governing the tracker session."""

    def __init__(
        self,
        provider: IdentityProvider,
        store: TransactionStore,
        cache: LocalCacheStore | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._cache = cache or LocalCacheStore()
        self.state = AuthState.UNAUTHENTICATED
        self.error: str | None = None
        self.identity: Identity | None = None
        self.session: TrackerSession | None = None
        self._profiled: set[str] = set()
        self._unwatch: Callable[[], None] | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def cached_identity(self) -> Identity | None:
        """The identity last seen on this installation, for display before sign-in."""

        return self._cache.read_identity()

    async def start(self) -> AuthState:
        """Check the provider's cached credential and follow identity changes."""

        self.state = AuthState.AUTHENTICATING
        try:
            identity = await self._provider.current_identity()
        except Exception as e:
            self._set_error(str(e) or "Could not restore session")
            return self.state
        await self._on_identity(identity)
        if self._unwatch is None:
            self._unwatch = self._provider.watch(self._identity_changed)
        return self.state

    async def stop(self) -> None:
        """Tear down for view exit: cancel the channel, keep the cache."""

        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        if self.session is not None:
            self.session.close()
            self.session = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def sign_in(self) -> AuthState:
        """Sign in with a popup, falling back to a redirect when it is blocked.

        Never raises: failures land in :attr:`state` ``error`` with a
        human-readable :attr:`error`.
        """

        self.error = None
        self.state = AuthState.AUTHENTICATING
        try:
            identity = await self._provider.sign_in(method="popup")
        except AuthError as e:
            if not e.popup_blocked:
                self._set_error(self._auth_message(e, "Login failed"))
                return self.state
            _logger.info("auth:popup_unavailable code=%s; trying redirect", e.code)
            try:
                identity = await self._provider.sign_in(method="redirect")
            except Exception as e2:
                self._set_error(self._auth_message(e2, "Login failed"))
                return self.state
        except Exception as e:
            self._set_error(self._auth_message(e, "Login failed"))
            return self.state
        await self._on_identity(identity)
        return self.state

    async def sign_out(self) -> AuthState:
        self.error = None
        try:
            await self._provider.sign_out()
        except Exception as e:
            self._set_error(self._auth_message(e, "Logout failed"))
            return self.state
        await self._on_identity(None)
        return self.state

    # ---- transitions --------------------------------------------------------

    def _identity_changed(self, identity: Identity | None) -> None:
        task = asyncio.get_running_loop().create_task(self._on_identity(identity))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _on_identity(self, identity: Identity | None) -> None:
        if identity is None:
            self._sign_out_locally()
            return

        self.identity = identity
        self.state = AuthState.AUTHENTICATED
        self.error = None
        self._cache.write_identity(identity)

        if self.session is None or self.session.uid != identity.uid:
            if self.session is not None:
                self.session.close()
            self.session = TrackerSession(identity, self._store, self._cache)
            self.session.start()

        if identity.uid not in self._profiled:
            self._profiled.add(identity.uid)
            try:
                await self.session.gateway.ensure_profile(identity)
            except UpdateFailed as e:
                # Non-fatal: the dashboard works from transactions alone.
                _logger.error("auth:profile_init_failed uid=%s error=%s", identity.uid, e)

    def _sign_out_locally(self) -> None:
        was = self.identity
        # Channel first, so no late delivery writes into the cleared cache.
        if self.session is not None:
            self.session.close()
            self.session = None
        self._cache.clear()
        self.identity = None
        self.state = AuthState.UNAUTHENTICATED
        if was is not None:
            _logger.info("auth:signed_out uid=%s", was.uid)

    def _set_error(self, message: str) -> None:
        self.state = AuthState.ERROR
        self.error = message
        _logger.warning("auth:error %s", message)

    @staticmethod
    def _auth_message(e: Exception, fallback: str) -> str:
        if isinstance(e, AuthError) and e.code == _ACCOUNT_EXISTS_CODE:
            return _ACCOUNT_EXISTS_MESSAGE
        return str(e) or fallback


__all__ = [
    "AuthState",
    "IdentityProvider",
    "SessionGate",
    "SignInMethod",
    "TrackerSession",
]
