"""memdex index: chunk the markdown corpus into the search store.

Unchanged files (same SHA-256 as the registry) are skipped; --force re-chunks
everything. Files that disappeared since the last run are pruned.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memdex.cli.common import BaseDirOption, DbOption, build_config, open_db
from memdex.cli.errors import err_config, err_database, err_storage_unavailable
from memdex.config import ConfigError
from memdex.db.connection import StorageUnavailable
from memdex.db.repository import Repository
from memdex.ingest.indexer import FileOutcome, FileResult, Indexer, IndexStats

console = Console()


def index_cmd(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Re-chunk files even if unchanged."),
    ] = False,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """(Re)build the chunk index for all markdown files under --base-dir."""
    try:
        cfg = build_config(base_dir, db)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    try:
        conn = open_db(cfg.db_path)
    except StorageUnavailable as exc:
        console.print(err_storage_unavailable(str(exc)))
        raise typer.Exit(1) from exc

    try:
        indexer = Indexer(Repository(conn), cfg)
        console.print(f"[bold]Indexing[/] {cfg.base_dir}")
        stats = indexer.index_all(force=force, on_file=_print_result)
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    _print_summary(stats)


def _print_result(result: FileResult) -> None:
    if result.outcome is FileOutcome.INDEXED:
        console.print(f"  [green]✓[/] {result.file} — {result.chunks} chunks [dim]({result.file_type})[/]")
    elif result.outcome is FileOutcome.UNCHANGED:
        console.print(f"  [dim]↷ {result.file} — unchanged[/]")
    elif result.outcome is FileOutcome.SKIPPED:
        console.print(f"  [yellow]↷ {result.file} — vanished, skipped[/]")
    else:
        console.print(f"  [red]✗ {result.file} — {result.error}[/]")


def _print_summary(stats: IndexStats) -> None:
    console.print(
        f"\n[bold]Done.[/] Indexed: [bold]{stats.indexed}[/]  |  "
        f"Unchanged: {stats.unchanged}  |  Skipped: {stats.skipped}  |  "
        f"Failed: {stats.failed}  |  Removed: {stats.removed}  |  "
        f"Chunks written: [bold]{stats.chunks}[/]"
    )
    if stats.by_type:
        parts = ", ".join(f"{t}: {n}" for t, n in sorted(stats.by_type.items()))
        console.print(f"  By type: {parts}")
