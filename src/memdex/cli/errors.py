"""memdex rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from memdex.cli.errors import err_no_db
    console.print(err_no_db(".memdex/memory.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

import sqlite3


def err_no_db(db_path: str = ".memdex/memory.db") -> str:
    """No index database at *db_path*."""
    return (
        f"[yellow]Warning:[/] No index found at '{db_path}'.\n"
        "  Run:  memdex index"
    )


def err_storage_unavailable(detail: str) -> str:
    """SQLite cannot be used: no FTS5, or the file cannot be opened."""
    return (
        f"[red]Error:[/] Storage unavailable: {detail}\n"
        f"  Your Python links SQLite {sqlite3.sqlite_version}; memdex needs a build with FTS5.\n"
        "  Install a Python whose sqlite3 has FTS5 enabled, or point --db at a writable path."
    )


def err_database(detail: str) -> str:
    """A SQLite error interrupted a command (locked or damaged store)."""
    return (
        f"[red]Error:[/] Database error: {detail}\n"
        "  If another memdex command is running, wait for it and re-run; "
        "otherwise delete the .memdex/memory.db file and run:  memdex index"
    )


def err_config(detail: str) -> str:
    """A config value is malformed or out of range."""
    return (
        f"[red]Error:[/] Invalid configuration: {detail}\n"
        "  Fix the value in memdex.yaml (or ~/.memdex/config.yaml) and re-run."
    )


def err_no_docs_file(path: str) -> str:
    """The curated docs YAML file does not exist."""
    return (
        f"[red]Error:[/] No curated docs file at '{path}'.\n"
        "  Create it with a top-level 'docs:' list, or pass:  memdex extract --file PATH"
    )


def err_docs_format(detail: str) -> str:
    """The curated docs YAML file is malformed."""
    return (
        f"[red]Error:[/] Curated docs file is malformed: {detail}\n"
        "  Each entry needs a 'tool_name'; see 'memdex extract --help' for the layout."
    )


def err_empty_query(command: str) -> str:
    """A query/task argument was blank."""
    return (
        f"[yellow]Warning:[/] Empty query.\n"
        f"  Run:  memdex {command} \"what you are looking for\""
    )


def err_capture(detail: str) -> str:
    """A session could not be written to the dated log."""
    return (
        f"[red]Error:[/] Could not capture session: {detail}\n"
        "  Fix the problem above and re-run, or capture manually:  "
        "memdex capture \"Session name\" COMPLETE --tasks \"t1, t2\""
    )
