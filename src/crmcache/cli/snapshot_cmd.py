"""CLI commands for persisted cache snapshots.

Only durable snapshots (file or Redis) can be opened here; session snapshots
live in the memory of the process that wrote them.

Usage:
    crmcache snapshot stats
    crmcache snapshot stats --backend redis --format json
    crmcache snapshot sweep --snapshot-dir ./cache
    crmcache snapshot clear --key crm_cache
"""

from __future__ import annotations

import time
from pathlib import Path

import orjson
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crmcache.cache.backends import (
    SnapshotStore,
    create_snapshot_store,
    decode_snapshot,
    encode_snapshot,
)
from crmcache.cache.entry import CacheEntry, StorageType
from crmcache.config import settings
from crmcache.errors import PersistenceError

app = typer.Typer(help="Inspect and maintain persisted cache snapshots")
err_console = Console(stderr=True)


def _open_store(backend: str | None, snapshot_dir: Path | None) -> SnapshotStore:
    update: dict[str, object] = {}
    if backend is not None:
        update["durable_backend"] = backend
    if snapshot_dir is not None:
        update["snapshot_dir"] = snapshot_dir
    config = settings.model_copy(update=update) if update else settings
    try:
        store = create_snapshot_store(StorageType.DURABLE, config)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--backend") from e
    if store is None:
        raise typer.BadParameter("durable storage has no snapshot store", param_hint="--backend")
    return store


def _fail(e: PersistenceError) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(str(e))}")
    return typer.Exit(1)


def _load_entries(store: SnapshotStore, key: str) -> list[CacheEntry]:
    try:
        payload = store.load(key)
        return [] if payload is None else decode_snapshot(payload)
    except PersistenceError as e:
        raise _fail(e) from e


def _save_entries(store: SnapshotStore, key: str, entries: list[CacheEntry]) -> None:
    try:
        store.save(key, encode_snapshot(entries))
    except PersistenceError as e:
        raise _fail(e) from e


BackendOption = typer.Option(
    None, "--backend", "-b", help="Durable backend: file or redis (default from settings)"
)
KeyOption = typer.Option(None, "--key", "-k", help="Snapshot storage key")
DirOption = typer.Option(None, "--snapshot-dir", help="Directory of the file backend")


@app.command()
def stats(
    backend: str | None = BackendOption,
    key: str | None = KeyOption,
    snapshot_dir: Path | None = DirOption,
    output_format: str = typer.Option("text", "--format", "-f", help="Output format: text, json"),
) -> None:
    """Show the entries of a stored snapshot."""
    key = key or settings.storage_key
    entries = _load_entries(_open_store(backend, snapshot_dir), key)
    now = time.time() * 1000

    if output_format == "json":
        items = [
            {"key": e.key, "age": e.age(now), "ttl": e.ttl, "expired": e.is_expired(now)}
            for e in entries
        ]
        payload = {"storage_key": key, "size": len(entries), "items": items}
        typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
        return

    console = Console()
    table = Table(title=f"Snapshot {key} ({len(entries)} entries)")
    table.add_column("Key")
    table.add_column("Age (s)", justify="right")
    table.add_column("TTL (s)", justify="right")
    table.add_column("Expired")
    for entry in entries:
        table.add_row(
            entry.key,
            f"{entry.age(now) / 1000:.1f}",
            f"{entry.ttl / 1000:.1f}",
            "[red]yes[/red]" if entry.is_expired(now) else "no",
        )
    console.print(table)


@app.command()
def sweep(
    backend: str | None = BackendOption,
    key: str | None = KeyOption,
    snapshot_dir: Path | None = DirOption,
) -> None:
    """Remove expired entries from a stored snapshot."""
    key = key or settings.storage_key
    store = _open_store(backend, snapshot_dir)
    entries = _load_entries(store, key)
    now = time.time() * 1000
    remaining = [e for e in entries if not e.is_expired(now)]
    removed = len(entries) - len(remaining)
    if removed:
        _save_entries(store, key, remaining)
    Console().print(f"[green]Removed {removed} expired entries[/green] ({len(remaining)} remain)")


@app.command()
def clear(
    backend: str | None = BackendOption,
    key: str | None = KeyOption,
    snapshot_dir: Path | None = DirOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Replace a stored snapshot with an empty one."""
    key = key or settings.storage_key
    store = _open_store(backend, snapshot_dir)
    if not yes:
        count = len(_load_entries(store, key))
        typer.confirm(f"Clear {count} entries from {key}?", abort=True)
    _save_entries(store, key, [])
    Console().print(f"[green]Cleared snapshot {key}[/green]")
