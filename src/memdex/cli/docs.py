"""memdex extract / retrieve: curated reference documentation."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from memdex.cli.common import BaseDirOption, DbOption, build_config, open_db, open_for_read
from memdex.cli.errors import (
    err_config,
    err_database,
    err_docs_format,
    err_empty_query,
    err_no_docs_file,
    err_storage_unavailable,
)
from memdex.config import ConfigError
from memdex.db.connection import StorageUnavailable
from memdex.db.repository import Repository
from memdex.docs.loader import DocsFormatError
from memdex.docs.retriever import DocRetriever, format_docs

console = Console()


def extract_cmd(
    file: Annotated[
        Path | None,
        typer.Option("--file", help="Curated docs YAML (default: .memdex/docs.yaml)."),
    ] = None,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Load curated docs from YAML, replacing every stored doc."""
    try:
        cfg = build_config(base_dir, db)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    docs_path = file if file is not None else cfg.docs_path
    if not docs_path.is_file():
        console.print(err_no_docs_file(str(docs_path)))
        raise typer.Exit(1)

    try:
        conn = open_db(cfg.db_path)
    except StorageUnavailable as exc:
        console.print(err_storage_unavailable(str(exc)))
        raise typer.Exit(1) from exc

    try:
        docs = DocRetriever(Repository(conn), cfg).extract(docs_path)
    except DocsFormatError as exc:
        console.print(err_docs_format(str(exc)))
        raise typer.Exit(1) from exc
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    for doc in docs:
        console.print(f"  [green]✓[/] {escape(doc.tool_name)} (~{doc.token_count} tokens)")
    total = sum(d.token_count for d in docs)
    console.print(f"\n[bold]Extracted {len(docs)} docs[/] (~{total:,} tokens stored)")


def retrieve_cmd(
    task: Annotated[str, typer.Argument(help="Task description.")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum docs.")] = 3,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Print curated documentation relevant to a task."""
    if not task.strip():
        console.print(err_empty_query("retrieve"))
        return
    conn, cfg = open_for_read(console, base_dir, db)
    if conn is None:
        console.print("No relevant documentation found.")
        return
    try:
        docs = DocRetriever(Repository(conn), cfg).retrieve(task, limit)
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        docs = []
    finally:
        conn.close()

    if not docs:
        console.print("No relevant documentation found.")
        return
    console.print(format_docs(docs), markup=False, highlight=False)
