"""Append work sessions to today's dated log.

Sessions are written in the layout the session expander reads back: a header
line starting with ``sessions.header_prefix``, the ``**Started:**`` /
``**Mode:**`` / ``**Status:**`` metadata lines, then one ``###`` subsection per
non-empty list.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from memdex.config import MemdexConfig

logger = logging.getLogger(__name__)

_GIT_MAX_COMMITS = 5
_GIT_MAX_FILES = 10


class CaptureError(RuntimeError):
    """A session could not be assembled (e.g. git history unavailable)."""


@dataclass
class Commit:
    hash: str
    message: str = "-"


@dataclass
class SessionEntry:
    """One work session, as written under a session header."""

    name: str = "Untitled Session"
    status: str = "IN_PROGRESS"
    mode: str = "Standard"
    iteration: str | None = None
    tasks: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)
    notes: str = ""


def split_list(value: str | None) -> list[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def daily_log_path(config: MemdexConfig, now: datetime | None = None) -> Path:
    now = now or datetime.now()
    return config.log_dir / f"{now:%Y-%m-%d}.md"


def ensure_daily_log(config: MemdexConfig, now: datetime | None = None) -> tuple[Path, bool]:
    """Return today's log path, creating the file with a title if missing.

    Returns:
        ``(path, created)``.
    """
    now = now or datetime.now()
    path = daily_log_path(config, now)
    if path.exists():
        return path, False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"# Daily Log: {now:%Y-%m-%d}\n", encoding="utf-8")
    logger.debug("Created daily log %s", path)
    return path, True


def render_session(entry: SessionEntry, header_prefix: str, now: datetime) -> str:
    """Markdown block for *entry*, framed by ``---`` rules."""
    name = " ".join(entry.name.split()) or "Untitled Session"
    out = ["", "---", "", f"{header_prefix} {name}", ""]
    out.append(f"**Started:** ~{now:%H:%M}")
    out.append(f"**Mode:** {entry.mode}")
    if entry.iteration:
        out.append(f"**Iteration:** {entry.iteration}")
    out.append(f"**Status:** {entry.status}")
    out.append("")

    if entry.tasks:
        out.append("### Tasks Completed")
        out.extend(f"- [x] {task}" for task in entry.tasks)
        out.append("")
    if entry.decisions:
        out.append("### Key Decisions Made")
        out.extend(f"{i}. {d}" for i, d in enumerate(entry.decisions, start=1))
        out.append("")
    if entry.insights:
        out.append("### Insights Discovered")
        out.extend(f"- {insight}" for insight in entry.insights)
        out.append("")
    if entry.files:
        out.extend(["### Files Modified", "```", *entry.files, "```", ""])
    if entry.commits:
        out.extend(["### Commits", "| Hash | Message |", "|------|---------|"])
        out.extend(f"| {c.hash} | {c.message} |" for c in entry.commits)
        out.append("")
    if entry.blockers:
        out.append("### Blockers")
        out.extend(f"- [ ] {b}" for b in entry.blockers)
        out.append("")
    if entry.notes:
        out.extend(["### Notes", entry.notes.rstrip(), ""])
    out.append("---")
    return "\n".join(out) + "\n"


def append_session(
    config: MemdexConfig,
    entry: SessionEntry,
    now: datetime | None = None,
) -> Path:
    """Append *entry* to today's dated log and return the log path."""
    now = now or datetime.now()
    path, _ = ensure_daily_log(config, now)
    block = render_session(entry, config.sessions.header_prefix, now)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(block)
    return path


def append_note(config: MemdexConfig, text: str, now: datetime | None = None) -> Path:
    """Append free text to today's dated log, outside any new session."""
    path, _ = ensure_daily_log(config, now)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"\n{text.rstrip()}\n")
    return path


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------


def entry_from_git(repo_dir: Path) -> SessionEntry:
    """Build a session from recent commits and the files they touched.

    The newest commit's subject becomes the session name.

    Raises:
        CaptureError: If git is missing or *repo_dir* is not a repository.
    """
    log = _git(repo_dir, "log", "--oneline", f"-{_GIT_MAX_COMMITS}", "--since=1 hour ago")
    if not log:
        log = _git(repo_dir, "log", "--oneline", "-3")
    commits = []
    for line in log:
        sha, _, message = line.partition(" ")
        commits.append(Commit(sha, message.strip() or "-"))

    files: list[str] = []
    for commit in commits:
        for name in _git(repo_dir, "show", "--name-only", "--format=", commit.hash):
            if name not in files:
                files.append(name)
    return SessionEntry(
        name=commits[0].message if commits else "Development Session",
        status="COMPLETE",
        mode="Auto-captured",
        files=files[:_GIT_MAX_FILES],
        commits=commits,
    )


def _git(repo_dir: Path, *args: str) -> list[str]:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=repo_dir,
            shell=False,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise CaptureError("git is not installed") from exc
    except subprocess.CalledProcessError as exc:
        raise CaptureError(f"git {args[0]} failed: {(exc.stderr or '').strip()}") from exc
    return [line for line in result.stdout.splitlines() if line.strip()]
