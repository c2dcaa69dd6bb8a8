"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from memdex.config import MemdexConfig
from memdex.db.connection import Database
from memdex.db.repository import Repository
from memdex.db.schema import initialize


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.memdex, ~/.claude.json and MEMDEX_* vars."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr("memdex.config._GLOBAL_CONFIG_PATH", home / ".memdex" / "config.yaml")
    monkeypatch.delenv("MEMDEX_DB", raising=False)
    monkeypatch.delenv("MEMDEX_DATA_DIR", raising=False)
    return home


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".memdex" / "memory.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def config(tmp_path):
    """Default config rooted at tmp_path (the test corpus)."""
    return MemdexConfig(base_dir=tmp_path)
