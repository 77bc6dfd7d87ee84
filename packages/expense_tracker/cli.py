# ruff: noqa: I001
"""CLI for the ``expense_tracker`` package.

Command handlers (``cmd_*``) return a process exit code and are wrapped by a
Typer console interface. Environment variables (``DATABASE_URL``,
``ET_USER_ID`` and friends) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Every command signs in through the
session gate, waits for the first live snapshot, and works from there; the
tracker logic itself lives in ``session``, ``gateway`` and ``analytics``.
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console

from .cache import LocalCacheStore
from .errors import ExpenseTrackerError, NotFoundError, ValidationError
from .identity import LocalIdentityProvider, identity_from_env
from .logging_setup import configure_logging
from .models import Identity, TransactionType
from .render import format_inr, render_history, render_summary, render_trend
from .session import AuthState, SessionGate, TrackerSession
from .store import SqlTransactionStore

console = Console()

type Action = Callable[[SessionGate, TrackerSession], Awaitable[int]]


@dataclass(frozen=True, slots=True)
class CliConfig:
    database_url: str | None
    identity: Identity | None
    cache_namespace: str | None


def _err(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


# ---- Session plumbing ---------------------------------------------------------


async def _with_session(cfg: CliConfig, action: Action) -> int:
    cache = LocalCacheStore(cfg.cache_namespace)
    store = SqlTransactionStore(database_url=cfg.database_url)
    gate = SessionGate(LocalIdentityProvider(cache, configured=cfg.identity), store, cache)
    try:
        state = await gate.start()
        if state is not AuthState.AUTHENTICATED:
            state = await gate.sign_in()
        if state is not AuthState.AUTHENTICATED or gate.session is None:
            _err(gate.error or "not signed in")
            return 1
        await gate.session.wait_synced()
        return await action(gate, gate.session)
    except ExpenseTrackerError as e:
        _err(str(e))
        return 1
    finally:
        await gate.stop()
        store.close()


def _run(cfg: CliConfig, action: Action) -> int:
    if not (cfg.database_url or os.getenv("DATABASE_URL")):
        _err("DATABASE_URL is not set in the environment (or pass --database-url).")
        return 1
    return asyncio.run(_with_session(cfg, action))


# ---- Command handlers -----------------------------------------------------------


def cmd_summary(cfg: CliConfig, *, trend: bool = False) -> int:
    """Print balance, totals and peak/lowest expense (and the daily trend)."""

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        console.print(render_summary(session.identity, session.analytics))
        if trend:
            console.print(render_trend(session.analytics))
        return 0

    return _run(cfg, _action)


def cmd_history(cfg: CliConfig) -> int:
    """Print all transactions, newest first."""

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        if not session.snapshot:
            console.print("No transactions yet.")
            return 0
        console.print(render_history(session.snapshot))
        return 0

    return _run(cfg, _action)


def cmd_add(
    cfg: CliConfig,
    *,
    tx_type: TransactionType,
    category: str,
    amount: str,
    date: str | None = None,
) -> int:
    """Create a transaction and print the id the store assigned."""

    draft: dict[str, Any] = {"type": tx_type, "category": category, "amount": amount}
    if date:
        draft["date"] = date

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        try:
            tx_id = await session.gateway.create(draft)
        except ValidationError as e:
            _err(f"invalid transaction: {e}")
            return 1
        print(tx_id)
        console.print(f"Balance: {format_inr(session.analytics.balance)}")
        return 0

    return _run(cfg, _action)


def cmd_edit(cfg: CliConfig, tx_id: str, **fields: Any) -> int:
    """Apply a partial change to one transaction."""

    patch = {k: v for k, v in fields.items() if v is not None}

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        try:
            await session.gateway.update(tx_id, patch)
        except ValidationError as e:
            _err(f"invalid change: {e}")
            return 1
        except NotFoundError:
            _err(f"no transaction with id {tx_id}")
            return 1
        console.print(f"Updated {tx_id}")
        return 0

    return _run(cfg, _action)


def cmd_remove(cfg: CliConfig, tx_id: str) -> int:
    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        await session.gateway.delete(tx_id)
        console.print(f"Deleted {tx_id}")
        return 0

    return _run(cfg, _action)


def cmd_clear(cfg: CliConfig, *, assume_yes: bool = False) -> int:
    """Delete every transaction; reports ids whose deletion was not confirmed."""

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        if not session.snapshot:
            console.print("Nothing to delete.")
            return 0
        if not assume_yes and not typer.confirm(
            "Delete ALL transactions? This cannot be undone!", default=False
        ):
            console.print("Aborted.")
            return 1
        result = await session.gateway.delete_all()
        console.print(f"Deleted {len(result.deleted)} transaction(s).")
        if not result.ok:
            for tx_id, exc in result.unconfirmed.items():
                _err(f"could not confirm deletion of {tx_id}: {exc}")
            return 1
        return 0

    return _run(cfg, _action)


def cmd_logout(cfg: CliConfig) -> int:
    """Sign out and forget the cached identity and snapshot."""

    async def _action(gate: SessionGate, session: TrackerSession) -> int:
        state = await gate.sign_out()
        if state is AuthState.ERROR:
            _err(gate.error or "Logout failed")
            return 1
        console.print("Signed out.")
        return 0

    return _run(cfg, _action)


def cmd_init_db(cfg: CliConfig) -> int:
    """Create the tracker tables directly (quick start without Alembic)."""

    from db import metadata
    from db.client import get_engine

    try:
        metadata.create_all(get_engine(database_url=cfg.database_url))
    except RuntimeError as e:
        _err(str(e))
        return 1
    console.print("Tables created.")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Track income, expenses and savings against a shared database. "
        "Loads DATABASE_URL and ET_USER_* from a local .env before running."
    ),
)


def _cfg(ctx: typer.Context) -> CliConfig:
    cfg = ctx.obj
    assert isinstance(cfg, CliConfig)  # set by _root
    return cfg


@app.command("summary")
def summary_cmd(
    ctx: typer.Context,
    trend: bool = typer.Option(False, "--trend", help="Also print the 30-day cumulative series."),
) -> None:
    """Show balance, totals and peak/lowest expense."""

    raise typer.Exit(cmd_summary(_cfg(ctx), trend=trend))


@app.command("history")
def history_cmd(ctx: typer.Context) -> None:
    """List transactions, newest first."""

    raise typer.Exit(cmd_history(_cfg(ctx)))


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    amount: str = typer.Option(..., help="Positive amount, e.g. 250 or 99.50."),
    category: str = typer.Option(..., help="Category label, e.g. Groceries."),
    tx_type: TransactionType = typer.Option(
        TransactionType.EXPENSE, "--type", help="income, expense or savings."
    ),
    date: str | None = typer.Option(None, help="ISO-8601 date; defaults to now."),
) -> None:
    """Record a new transaction."""

    raise typer.Exit(
        cmd_add(_cfg(ctx), tx_type=tx_type, category=category, amount=amount, date=date)
    )


@app.command("edit")
def edit_cmd(
    ctx: typer.Context,
    tx_id: str = typer.Argument(..., help="Transaction id (see `history`)."),
    amount: str | None = typer.Option(None, help="New amount."),
    category: str | None = typer.Option(None, help="New category."),
    tx_type: TransactionType | None = typer.Option(None, "--type", help="New type."),
    date: str | None = typer.Option(None, help="New ISO-8601 date."),
) -> None:
    """Change fields of an existing transaction."""

    raise typer.Exit(
        cmd_edit(_cfg(ctx), tx_id, amount=amount, category=category, type=tx_type, date=date)
    )


@app.command("remove")
def remove_cmd(
    ctx: typer.Context,
    tx_id: str = typer.Argument(..., help="Transaction id (see `history`)."),
) -> None:
    """Delete one transaction."""

    raise typer.Exit(cmd_remove(_cfg(ctx), tx_id))


@app.command("clear")
def clear_cmd(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete ALL transactions."""

    raise typer.Exit(cmd_clear(_cfg(ctx), assume_yes=yes))


@app.command("logout")
def logout_cmd(ctx: typer.Context) -> None:
    """Sign out and clear the local cache."""

    raise typer.Exit(cmd_logout(_cfg(ctx)))


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create the tracker tables in DATABASE_URL."""

    raise typer.Exit(cmd_init_db(_cfg(ctx)))


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    user_id: str | None = typer.Option(None, help="Identity to sign in as (env ET_USER_ID)."),
    user_name: str | None = typer.Option(None, help="Display name (env ET_USER_NAME)."),
    user_email: str | None = typer.Option(None, help="Email (env ET_USER_EMAIL)."),
    cache_namespace: str | None = typer.Option(
        None, help="Local cache namespace (env ET_CACHE_NAMESPACE)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    # Quiet by default on a terminal; EXPENSE_TRACKER_LOG_LEVEL opts in.
    configure_logging(os.getenv("EXPENSE_TRACKER_LOG_LEVEL") or "WARNING")

    identity = identity_from_env()
    if user_id:
        identity = Identity(uid=user_id, display_name=user_name, email=user_email)
    elif identity is not None and (user_name or user_email):
        identity = identity.model_copy(
            update={
                "display_name": user_name or identity.display_name,
                "email": user_email or identity.email,
            }
        )

    ctx.obj = CliConfig(
        database_url=database_url,
        identity=identity,
        cache_namespace=cache_namespace,
    )


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m expense_tracker.cli`
    app()
