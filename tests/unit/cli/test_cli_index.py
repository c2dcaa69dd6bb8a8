"""Tests for the memdex index command."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from memdex.cli.main import app
from memdex.db.connection import Database
from memdex.db.repository import Repository
from memdex.ingest.indexer import Indexer

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(base: Path, rel: str, text: str) -> None:
    path = base / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def corpus(tmp_path: Path) -> Path:
    _write(tmp_path, "CLAUDE.md", "# Instructions\nBe terse.\n")
    _write(tmp_path, "memory/2026-03-01.md", "## Session: Setup\nInstalled deps.\n")
    return tmp_path


def _index(base: Path, *extra: str):
    return runner.invoke(app, ["index", "-C", str(base), *extra])


# ---------------------------------------------------------------------------
# memdex index
# ---------------------------------------------------------------------------


def test_index_creates_db(corpus: Path) -> None:
    result = _index(corpus)
    assert result.exit_code == 0, result.output
    assert (corpus / ".memdex" / "memory.db").exists()


def test_index_reports_each_file(corpus: Path) -> None:
    result = _index(corpus)
    assert "CLAUDE.md" in result.output
    assert "memory/2026-03-01.md" in result.output
    assert "Done." in result.output
    assert "daily_log: 1" in result.output


def test_second_run_reports_unchanged(corpus: Path) -> None:
    _index(corpus)
    result = _index(corpus)
    assert result.exit_code == 0
    assert "unchanged" in result.output
    assert "Indexed: 0" in result.output


def test_force_reindexes(corpus: Path) -> None:
    _index(corpus)
    result = _index(corpus, "--force")
    assert "Indexed: 2" in result.output


def test_custom_db_path(corpus: Path, tmp_path: Path) -> None:
    db_path = tmp_path / "elsewhere" / "idx.db"
    result = _index(corpus, "--db", str(db_path))
    assert result.exit_code == 0
    conn = Database(db_path).connect()
    try:
        assert Repository(conn).counts()["files"] == 2
    finally:
        conn.close()


def test_invalid_config_exits_1(corpus: Path) -> None:
    _write(corpus, "memdex.yaml", "chunking:\n  chunk_chars: 10\n  overlap_chars: 50\n")
    result = _index(corpus)
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_storage_unavailable_exits_1(corpus: Path, monkeypatch) -> None:
    monkeypatch.setattr("memdex.db.connection._has_fts5", lambda conn: False)
    result = _index(corpus)
    assert result.exit_code == 1
    assert "Storage unavailable" in result.output


def test_non_database_file_exits_1(corpus: Path) -> None:
    db_path = corpus / "garbage.db"
    db_path.write_bytes(b"this is not a sqlite database at all" * 100)
    result = _index(corpus, "--db", str(db_path))
    assert result.exit_code == 1
    assert "Storage unavailable" in result.output


def test_locked_database_fails_files_not_batch(corpus: Path, monkeypatch) -> None:
    def _locked(self, record, chunks):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(Repository, "replace_file_chunks", _locked)
    result = _index(corpus)
    assert result.exit_code == 0
    assert "database is locked" in result.output
    assert "Failed: 2" in result.output


def test_database_error_outside_files_exits_1(corpus: Path, monkeypatch) -> None:
    def _broken(self, force=False, on_file=None):
        raise sqlite3.DatabaseError("database disk image is malformed")

    monkeypatch.setattr(Indexer, "index_all", _broken)
    result = _index(corpus)
    assert result.exit_code == 1
    assert "Database error" in result.output


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "memdex" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("memdex ")
