"""memdex sync / recommend / tools: the capability catalog commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from memdex.catalog.catalog import Recommendation, ToolCatalog
from memdex.cli.common import BaseDirOption, DbOption, build_config, open_db, open_for_read
from memdex.cli.errors import err_config, err_database, err_empty_query, err_storage_unavailable
from memdex.config import ConfigError
from memdex.db.connection import StorageUnavailable
from memdex.db.models import ToolType
from memdex.db.repository import Repository

console = Console()

_DESCRIPTION_PREVIEW = 100


def sync_cmd(
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Rebuild the tool catalog from integration configs and workflow docs."""
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
        stats = ToolCatalog(Repository(conn), cfg).sync()
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    console.print("[bold]Catalog sync complete.[/]")
    console.print(
        f"  Integrations: {stats.integrations}  |  Workflows: {stats.workflows}  |  "
        f"Updated: [bold]{stats.indexed}[/]  |  Unchanged: {stats.unchanged}  |  "
        f"Removed: {stats.removed}"
    )
    if stats.domains:
        console.print("\n[bold]By domain:[/]")
        for domain, count in sorted(stats.domains.items(), key=lambda kv: (-kv[1], kv[0])):
            console.print(f"  • {escape(domain)}: {count}")


def recommend_cmd(
    task: Annotated[str, typer.Argument(help="Task description.")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum suggestions.")] = 5,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Suggest catalog capabilities for a task (records usage for learning)."""
    if not task.strip():
        console.print(err_empty_query("recommend"))
        return
    conn, cfg = open_for_read(console, base_dir, db)
    if conn is None:
        console.print("No tool recommendations found for this task.")
        return
    try:
        recs = ToolCatalog(Repository(conn), cfg).recommend(task, limit)
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        recs = []
    finally:
        conn.close()

    if not recs:
        console.print("No tool recommendations found for this task.")
        return
    console.print("[bold]Recommended tools:[/]")
    for rec in recs:
        _print_recommendation(rec)


def tools_cmd(
    tool_type: Annotated[
        ToolType | None,
        typer.Option("--type", "-t", case_sensitive=False, help="Only this record type."),
    ] = None,
    domain: Annotated[str | None, typer.Option("--domain", "-d", help="Only this domain.")] = None,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """List catalog records."""
    conn, cfg = open_for_read(console, base_dir, db)
    if conn is None:
        console.print("No tools indexed.")
        return
    try:
        tools = ToolCatalog(Repository(conn), cfg).list_tools(
            tool_type.value if tool_type else None, domain
        )
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        tools = []
    finally:
        conn.close()

    if not tools:
        console.print("No tools indexed.")
        return
    table = Table(title=f"Indexed tools ({len(tools)})")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Domain")
    table.add_column("Uses", justify="right")
    table.add_column("Keywords")
    for tool in tools:
        table.add_row(
            escape(tool.name),
            tool.type.value,
            escape(tool.domain),
            str(tool.use_count),
            escape(", ".join(tool.keywords[:4])),
        )
    console.print(table)


def _print_recommendation(rec: Recommendation) -> None:
    tool = rec.tool
    desc = tool.description
    if len(desc) > _DESCRIPTION_PREVIEW:
        desc = desc[:_DESCRIPTION_PREVIEW] + "..."
    console.print(f"\n[bold]{escape(tool.name)}[/]")
    console.print(
        f"  Type: {tool.type.value.upper()} | Domain: {escape(tool.domain)} | "
        f"Confidence: {round(rec.confidence * 100)}%"
    )
    if desc:
        console.print(f"  {escape(desc)}")
    if tool.keywords:
        console.print(f"  Keywords: {escape(', '.join(tool.keywords[:6]))}")
