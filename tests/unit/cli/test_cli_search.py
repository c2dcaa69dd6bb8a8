"""Tests for the memdex search and sessions commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from memdex.cli.main import app
from memdex.cli.search import NO_MATCHES
from memdex.search.retrieval import Retriever

runner = CliRunner()

LOG = """\
## Session: Billing
**Status:** Complete
Fixed the stripe webhook retry loop.
### Key Insight
Retries need idempotency keys.

## Session: Voice
**Status:** Blocked
Waiting on vapi credentials.
"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(base: Path, rel: str, text: str) -> None:
    path = base / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def indexed(tmp_path: Path) -> Path:
    _write(tmp_path, "memory/2026-03-02.md", LOG)
    _write(tmp_path, "docs/webhooks.md", "# Webhooks\nSigned payloads only.\n")
    result = runner.invoke(app, ["index", "-C", str(tmp_path)])
    assert result.exit_code == 0, result.output
    return tmp_path


def _search(base: Path, *args: str):
    return runner.invoke(app, ["search", *args, "-C", str(base)])


# ---------------------------------------------------------------------------
# memdex search
# ---------------------------------------------------------------------------


def test_search_session_default(indexed: Path) -> None:
    result = _search(indexed, "stripe")
    assert result.exit_code == 0
    assert "SESSION: Billing" in result.output
    assert "Fixed the stripe webhook retry loop." in result.output
    assert "Found 1 results." in result.output


def test_search_chunk_mode(indexed: Path) -> None:
    result = _search(indexed, "signed", "--chunk")
    assert result.exit_code == 0
    assert "CHUNK: docs/webhooks.md:1-2" in result.output


def test_search_context_mode(indexed: Path) -> None:
    result = _search(indexed, "Investigate stripe idempotency problems", "--context")
    assert result.exit_code == 0
    assert "SESSION: Billing" in result.output
    assert "Retries need idempotency keys." in result.output


def test_search_file_filter(indexed: Path) -> None:
    result = _search(indexed, "webhook", "--file", "docs/")
    assert "docs/webhooks.md" in result.output
    assert "SESSION" not in result.output


def test_search_no_matches(indexed: Path) -> None:
    result = _search(indexed, "kubernetes")
    assert result.exit_code == 0
    assert NO_MATCHES in result.output


def test_search_query_with_fts_syntax(indexed: Path) -> None:
    result = _search(indexed, "stripe AND (")
    assert result.exit_code == 0


def test_search_empty_query(indexed: Path) -> None:
    result = _search(indexed, "   ")
    assert result.exit_code == 0
    assert "Empty query" in result.output
    assert NO_MATCHES in result.output


def test_search_without_index_exits_zero(tmp_path: Path) -> None:
    result = _search(tmp_path, "anything")
    assert result.exit_code == 0
    assert "No index found" in result.output
    assert NO_MATCHES in result.output


def test_search_invalid_config_exits_zero(indexed: Path) -> None:
    _write(indexed, "memdex.yaml", "search:\n  limit: 0\n")
    result = _search(indexed, "stripe")
    assert result.exit_code == 0
    assert "Invalid configuration" in result.output
    assert NO_MATCHES in result.output


def test_search_storage_unavailable_exits_zero(indexed: Path, monkeypatch) -> None:
    monkeypatch.setattr("memdex.db.connection._has_fts5", lambda conn: False)
    result = _search(indexed, "stripe")
    assert result.exit_code == 0
    assert "Storage unavailable" in result.output


def test_search_non_database_file_exits_zero(tmp_path: Path) -> None:
    db_path = tmp_path / "garbage.db"
    db_path.write_bytes(b"this is not a sqlite database at all" * 100)
    result = _search(tmp_path, "stripe", "--db", str(db_path))
    assert result.exit_code == 0
    assert "Storage unavailable" in result.output
    assert NO_MATCHES in result.output


def test_search_database_error_exits_zero(indexed: Path, monkeypatch) -> None:
    def _locked(self, request):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(Retriever, "run", _locked)
    result = _search(indexed, "stripe")
    assert result.exit_code == 0
    assert "Database error" in result.output
    assert NO_MATCHES in result.output


def test_search_verbose_shows_match(indexed: Path) -> None:
    result = _search(indexed, "stripe", "--verbose")
    assert "Match:" in result.output


# ---------------------------------------------------------------------------
# memdex sessions
# ---------------------------------------------------------------------------


def test_sessions_lists_with_status(indexed: Path) -> None:
    result = runner.invoke(app, ["sessions", "-C", str(indexed)])
    assert result.exit_code == 0
    assert "Billing | Complete" in result.output
    assert "Voice | Blocked" in result.output
    assert "Total: 2 sessions" in result.output


def test_sessions_limit(indexed: Path) -> None:
    result = runner.invoke(app, ["sessions", "-n", "1", "-C", str(indexed)])
    assert "Total: 1 sessions" in result.output


def test_sessions_without_index(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sessions", "-C", str(tmp_path)])
    assert result.exit_code == 0
    assert "No sessions found." in result.output
