"""Tests for the Database connection layer."""

from __future__ import annotations

import sqlite3

import pytest

from memdex.db.connection import Database, StorageUnavailable


def test_connect_creates_file_and_parent(tmp_path):
    db_path = tmp_path / ".memdex" / "memory.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_wal_journal_mode(tmp_path):
    conn = Database(tmp_path / "memory.db").connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_row_factory_set(tmp_path):
    conn = Database(tmp_path / "memory.db").connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_fts5_available(tmp_path):
    conn = Database(tmp_path / "memory.db").connect()
    conn.execute("CREATE VIRTUAL TABLE docs USING fts5(body)")
    conn.execute("INSERT INTO docs(body) VALUES ('stripe webhook')")
    hits = conn.execute("SELECT body FROM docs WHERE docs MATCH 'webhook'").fetchall()
    conn.close()
    assert len(hits) == 1


def test_fts5_check_table_is_dropped(tmp_path):
    conn = Database(tmp_path / "memory.db").connect()
    row = conn.execute(
        "SELECT name FROM sqlite_temp_master WHERE name = '_fts5_check'"
    ).fetchone()
    conn.close()
    assert row is None


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / "memory.db")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(sqlite3.ProgrammingError):
        conn.execute("SELECT 1")


def test_unopenable_path_raises_storage_unavailable(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(StorageUnavailable, match="Cannot open database"):
        Database(blocker / "memory.db").connect()


def test_missing_fts5_raises_storage_unavailable(tmp_path, monkeypatch):
    monkeypatch.setattr("memdex.db.connection._has_fts5", lambda conn: False)
    with pytest.raises(StorageUnavailable, match="FTS5"):
        Database(tmp_path / "memory.db").connect()


def test_non_database_file_raises_storage_unavailable(tmp_path):
    path = tmp_path / "memory.db"
    path.write_bytes(b"this is not a sqlite database at all" * 100)
    with pytest.raises(StorageUnavailable, match="Cannot open database"):
        Database(path).connect()
