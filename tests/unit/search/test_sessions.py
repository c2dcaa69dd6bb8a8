"""Tests for session boundaries, summaries and expansion."""

from __future__ import annotations

from pathlib import Path

import pytest

from memdex.db.models import Chunk
from memdex.ingest.indexer import Indexer
from memdex.search.engine import ChunkHit, MatchSource
from memdex.search.sessions import (
    FULL_DOCUMENT,
    PREAMBLE,
    ResultKind,
    SessionExpander,
    find_session,
    summarize_session,
)

LOG = """\
# 2026-01-02
Preamble notes.

## Session: Billing fixes
**Started:** 09:00
**Status:** Complete
Fixed the stripe webhook retry loop.
### Tasks Completed
- webhook retries
### Scratch
random musings

## Session: Voice agent
**Status:** In progress
Tuned the vapi assistant prompt.
"""


def _write(base: Path, rel: str, text: str) -> None:
    path = base / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _hit(file: str, line: int, content: str = "x", score: float = -1.0) -> ChunkHit:
    return ChunkHit(Chunk(file, line, line, content, "h", 0), score, MatchSource.FULL_TEXT)


@pytest.fixture
def logs(tmp_path, repo, config):
    _write(tmp_path, "memory/2026-01-02.md", LOG)
    _write(tmp_path, "memory/2026-01-03.md", "## Session: Deploy\n**Status:** Done\nShipped.\n")
    _write(tmp_path, "README.md", "# Readme\nwebhook docs\n")
    Indexer(repo, config).index_all()
    return tmp_path


# ------------------------------------------------------------------
# find_session
# ------------------------------------------------------------------

def test_find_session_middle():
    lines = LOG.splitlines()
    assert find_session(lines, 7, "## Session:") == ("Billing fixes", 4, 12)


def test_find_session_last_runs_to_eof():
    lines = LOG.splitlines()
    name, start, end = find_session(lines, 15, "## Session:")
    assert (name, start, end) == ("Voice agent", 13, len(lines))


def test_find_session_on_header_line():
    lines = LOG.splitlines()
    assert find_session(lines, 4, "## Session:")[0] == "Billing fixes"


def test_find_session_preamble():
    lines = LOG.splitlines()
    assert find_session(lines, 2, "## Session:") == (PREAMBLE, 1, 3)


def test_find_session_span_reaching_first_header():
    lines = LOG.splitlines()
    assert find_session(lines, 1, "## Session:", last_line=3) == (PREAMBLE, 1, 3)
    assert find_session(lines, 1, "## Session:", last_line=8) == ("Billing fixes", 4, 12)


def test_find_session_no_headers_is_full_document():
    assert find_session(["a", "b", "c"], 2, "## Session:") == (FULL_DOCUMENT, 1, 3)


def test_find_session_empty_name_numbered():
    lines = ["## Session:", "x", "## Session:  ", "y"]
    assert find_session(lines, 4, "## Session:")[0] == "Session 2"


# ------------------------------------------------------------------
# summarize_session
# ------------------------------------------------------------------

def test_summary_keeps_header_meta_and_sections():
    span = LOG.splitlines()[3:12]
    summary = summarize_session(
        span, ["Tasks Completed"], ["**Started:", "**Status:"]
    ).splitlines()
    assert summary == [
        "## Session: Billing fixes",
        "**Started:** 09:00",
        "**Status:** Complete",
        "### Tasks Completed",
        "- webhook retries",
    ]


def test_summary_of_empty_span():
    assert summarize_session([], ["Goal"], []) == ""


# ------------------------------------------------------------------
# SessionExpander
# ------------------------------------------------------------------

def test_is_dated_log_uses_registry(logs, repo, config):
    expander = SessionExpander(repo, config)
    assert expander.is_dated_log("memory/2026-01-02.md")
    assert not expander.is_dated_log("README.md")
    assert not expander.is_dated_log("never-indexed.md")


def test_expand_returns_full_session(logs, repo, config):
    results = SessionExpander(repo, config).expand([_hit("memory/2026-01-02.md", 7, "stripe webhook")])
    assert len(results) == 1
    r = results[0]
    assert r.kind is ResultKind.SESSION
    assert r.session_name == "Billing fixes"
    assert (r.line_start, r.line_end) == (4, 12)
    assert "random musings" in r.content
    assert r.match_context == "stripe webhook"


def test_expand_dedupes_same_session(logs, repo, config):
    hits = [
        _hit("memory/2026-01-02.md", 7, score=-2.0),
        _hit("memory/2026-01-02.md", 9, score=-1.5),
        _hit("memory/2026-01-02.md", 15, score=-1.0),
    ]
    results = SessionExpander(repo, config).expand(hits)
    assert [r.session_name for r in results] == ["Billing fixes", "Voice agent"]
    assert results[0].score == -2.0


def test_expand_keeps_non_log_hits_as_chunks(logs, repo, config):
    hits = [_hit("README.md", 2, "webhook docs"), _hit("memory/2026-01-02.md", 7)]
    results = SessionExpander(repo, config).expand(hits)
    assert [r.kind for r in results] == [ResultKind.CHUNK, ResultKind.SESSION]
    assert results[0].content == "webhook docs"


def test_expand_summary_mode(logs, repo, config):
    results = SessionExpander(repo, config).expand([_hit("memory/2026-01-02.md", 7)], summary=True)
    assert "random musings" not in results[0].content
    assert "- webhook retries" in results[0].content


def test_expand_unreadable_log_degrades_to_chunk(logs, repo, config):
    (logs / "memory/2026-01-02.md").unlink()
    results = SessionExpander(repo, config).expand([_hit("memory/2026-01-02.md", 7, "stale")])
    assert results[0].kind is ResultKind.CHUNK
    assert results[0].content == "stale"


def test_list_sessions_newest_file_first(logs, repo, config):
    sessions = SessionExpander(repo, config).list_sessions()
    assert [(s.file, s.name, s.status) for s in sessions] == [
        ("memory/2026-01-03.md", "Deploy", "Done"),
        ("memory/2026-01-02.md", "Billing fixes", "Complete"),
        ("memory/2026-01-02.md", "Voice agent", "In progress"),
    ]


def test_list_sessions_limit(logs, repo, config):
    assert len(SessionExpander(repo, config).list_sessions(limit=2)) == 2
