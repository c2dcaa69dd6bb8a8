"""Shared option types, config loading and DB opening for memdex commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from memdex.cli.errors import err_config, err_no_db, err_storage_unavailable
from memdex.config import ConfigError, MemdexConfig, load_config
from memdex.db.connection import Database, StorageUnavailable
from memdex.db.schema import initialize

BaseDirOption = Annotated[
    Path,
    typer.Option("--base-dir", "-C", help="Corpus root; memdex.yaml is read from here."),
]
DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the index database (default: .memdex/memory.db)."),
]


def build_config(base_dir: Path, db: Path | None) -> MemdexConfig:
    """Load layered config for *base_dir*, then apply the --db flag.

    Raises:
        ConfigError: If a config file holds an invalid value.
    """
    cfg = load_config(base_dir)
    if db is not None:
        cfg.paths.db = str(db.expanduser().resolve())
    return cfg


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the index database and run migrations.

    Raises:
        StorageUnavailable: If SQLite lacks FTS5 or the file is not usable.
    """
    conn = Database(db_path).connect()
    try:
        initialize(conn)
    except sqlite3.DatabaseError as exc:
        conn.close()
        raise StorageUnavailable(f"Cannot initialise '{db_path}': {exc}") from exc
    return conn


def open_for_read(
    console: Console,
    base_dir: Path,
    db: Path | None,
    *,
    config_fatal: bool = True,
) -> tuple[sqlite3.Connection | None, MemdexConfig]:
    """Open the store for a read command, printing (not raising) problems.

    Returns ``(None, cfg)`` when the database file does not exist yet or
    storage is unavailable. An invalid config exits 1 unless *config_fatal*
    is false, in which case it also yields ``(None, defaults)``.
    """
    try:
        cfg = build_config(base_dir, db)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        if config_fatal:
            raise typer.Exit(1) from exc
        return None, MemdexConfig(base_dir=base_dir)

    if not cfg.db_path.exists():
        console.print(err_no_db(str(cfg.db_path)))
        return None, cfg
    try:
        return open_db(cfg.db_path), cfg
    except StorageUnavailable as exc:
        console.print(err_storage_unavailable(str(exc)))
        return None, cfg
