"""memdex capture: append a work session to today's dated log.

The log lands at <sessions.log_dir>/YYYY-MM-DD.md (memory/ by default) and is
picked up by the next `memdex index`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from memdex.capture import (
    CaptureError,
    Commit,
    SessionEntry,
    append_note,
    append_session,
    entry_from_git,
    split_list,
)
from memdex.cli.common import BaseDirOption, build_config
from memdex.cli.errors import err_capture, err_config
from memdex.config import ConfigError

console = Console()


def capture_cmd(
    name: Annotated[str, typer.Argument(help="Session name.")] = "Untitled Session",
    status: Annotated[str, typer.Argument(help="Session status, e.g. COMPLETE.")] = "IN_PROGRESS",
    tasks: Annotated[
        str | None, typer.Option("--tasks", help="Comma-separated tasks completed.")
    ] = None,
    decisions: Annotated[
        str | None, typer.Option("--decisions", help="Comma-separated key decisions.")
    ] = None,
    insights: Annotated[
        str | None, typer.Option("--insights", help="Comma-separated insights.")
    ] = None,
    blockers: Annotated[
        str | None, typer.Option("--blockers", help="Comma-separated open blockers.")
    ] = None,
    mode: Annotated[str, typer.Option("--mode", help="Session mode.")] = "Standard",
    commit: Annotated[
        list[str] | None, typer.Option("--commit", help="Commit hash (repeatable).")
    ] = None,
    notes: Annotated[str, typer.Option("--notes", help="Free-form notes.")] = "",
    iteration: Annotated[str | None, typer.Option("--iteration", help="Iteration number.")] = None,
    append: Annotated[
        str | None,
        typer.Option("--append", help="Append this text to today's log instead of a session."),
    ] = None,
    from_git: Annotated[
        bool,
        typer.Option("--git", help="Build the session from recent git commits."),
    ] = False,
    base_dir: BaseDirOption = Path("."),
) -> None:
    """Record a session (or a note) in today's dated log."""
    try:
        cfg = build_config(base_dir, None)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    try:
        if append is not None:
            path = append_note(cfg, append)
            console.print(f"[green]✓[/] Appended to daily log: {escape(str(path))}")
            return
        if from_git:
            entry = entry_from_git(cfg.base_dir)
        else:
            entry = SessionEntry(
                name=name,
                status=status,
                mode=mode,
                iteration=iteration,
                tasks=split_list(tasks),
                decisions=split_list(decisions),
                insights=split_list(insights),
                blockers=split_list(blockers),
                commits=[Commit(c) for c in commit or []],
                notes=notes,
            )
        path = append_session(cfg, entry)
    except (CaptureError, OSError) as exc:
        console.print(err_capture(str(exc)))
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] Session captured: [bold]{escape(entry.name)}[/]")
    console.print(f"  File: {escape(str(path))}")
    console.print("  Run:  memdex index  to make it searchable.")
