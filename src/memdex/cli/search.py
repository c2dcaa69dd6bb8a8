"""memdex search / sessions: read-only retrieval over the chunk index.

Read paths never fail the caller: storage or config problems are reported and
the command still exits 0 with an empty result.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from memdex.cli.common import BaseDirOption, DbOption, open_for_read
from memdex.cli.errors import err_database, err_empty_query
from memdex.db.repository import Repository
from memdex.search.retrieval import RetrievalMode, RetrievalRequest, Retriever
from memdex.search.sessions import ResultKind, RetrievalResult, SessionExpander

console = Console()

NO_MATCHES = "No matches found."


def search_cmd(
    query: Annotated[str, typer.Argument(help="Search text (or task description with --context).")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum results.")] = 5,
    file: Annotated[
        str | None,
        typer.Option("--file", help="Only search files whose path contains this string."),
    ] = None,
    session: Annotated[
        bool,
        typer.Option("--session", help="Expand dated-log hits to whole sessions (default)."),
    ] = False,
    chunk: Annotated[bool, typer.Option("--chunk", help="Return raw chunk hits.")] = False,
    context: Annotated[
        bool,
        typer.Option("--context", help="Treat the query as a task; return session summaries."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show the matched excerpt for session results."),
    ] = False,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Search indexed memory. Always exits 0."""
    if not query.strip():
        console.print(err_empty_query("search"))
        console.print(NO_MATCHES)
        return

    if context:
        mode = RetrievalMode.CONTEXT
    elif chunk and not session:
        mode = RetrievalMode.CHUNK
    else:
        mode = RetrievalMode.SESSION

    conn, cfg = open_for_read(console, base_dir, db, config_fatal=False)
    if conn is None:
        console.print(NO_MATCHES)
        return
    try:
        retriever = Retriever(Repository(conn), cfg)
        results = retriever.run(RetrievalRequest(query, mode, limit, file))
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        console.print(NO_MATCHES)
        return
    finally:
        conn.close()

    console.print(f"[bold]Searching for:[/] {escape(query)}  [dim](mode: {mode.value}, limit: {limit})[/]")
    if not results:
        console.print(NO_MATCHES)
        return
    for result in results:
        _print_result(result, verbose)
    console.print(f"\nFound {len(results)} results.")


def sessions_cmd(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum sessions.")] = 20,
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """List sessions recorded in dated logs, newest first."""
    conn, cfg = open_for_read(console, base_dir, db)
    if conn is None:
        console.print("No sessions found.")
        return
    try:
        sessions = SessionExpander(Repository(conn), cfg).list_sessions(limit)
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        console.print("No sessions found.")
        return
    finally:
        conn.close()

    if not sessions:
        console.print("No sessions found.")
        return
    console.print("[bold]Recent sessions:[/]\n")
    for s in sessions:
        console.print(f"  {escape(s.name)} | {escape(s.status)}")
        console.print(f"    [dim]└─ {escape(s.file)}:{s.line_start}-{s.line_end}[/]")
    console.print(f"\nTotal: {len(sessions)} sessions")


def _print_result(result: RetrievalResult, verbose: bool) -> None:
    console.rule(style="dim")
    location = f"{escape(result.file)}:{result.line_start}-{result.line_end}"
    if result.kind is ResultKind.SESSION:
        console.print(f"[bold cyan]SESSION:[/] {escape(result.session_name or '')}")
        console.print(f"  File: {location}")
    else:
        console.print(f"[bold]CHUNK:[/] {location}")
    console.print(f"  Score: {result.score:.3f} ({result.source.value})")
    if verbose and result.match_context:
        console.print(f"  Match: {result.match_context.strip()!r}", markup=False, highlight=False)
    console.print(result.content, markup=False, highlight=False)
