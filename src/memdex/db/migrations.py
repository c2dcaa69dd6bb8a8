"""Forward-only migration runner for memdex's database schema.

FTS5 tables are standalone (not external-content); rows are inserted with an
explicit rowid equal to the base table's rowid and kept in sync by the
repository.
"""

from __future__ import annotations

import sqlite3

# Tracks applied versions; exists before any migration runs.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS indexed_files (
    file            TEXT PRIMARY KEY,
    content_hash    TEXT NOT NULL,
    chunk_count     INTEGER NOT NULL DEFAULT 0,
    file_type       TEXT NOT NULL DEFAULT 'other',
    priority        REAL NOT NULL DEFAULT 0.5,
    indexed_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS chunks (
    id              TEXT PRIMARY KEY,
    file            TEXT NOT NULL,
    line_start      INTEGER NOT NULL,
    line_end        INTEGER NOT NULL,
    content         TEXT NOT NULL,
    content_hash    TEXT NOT NULL,
    chunk_index     INTEGER NOT NULL,
    section_header  TEXT,
    created_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_chunks_file ON chunks(file);

CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(content);

CREATE TABLE IF NOT EXISTS tools (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    type            TEXT NOT NULL,
    source          TEXT NOT NULL,
    domain          TEXT NOT NULL DEFAULT 'general',
    description     TEXT NOT NULL DEFAULT '',
    keywords        TEXT NOT NULL DEFAULT '[]',
    parameters      TEXT NOT NULL DEFAULT '{}',
    examples        TEXT NOT NULL DEFAULT '[]',
    priority        REAL NOT NULL DEFAULT 0.5,
    use_count       INTEGER NOT NULL DEFAULT 0,
    last_used       DATETIME,
    content_hash    TEXT NOT NULL,
    indexed_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_tools_domain ON tools(domain);

CREATE VIRTUAL TABLE IF NOT EXISTS tools_fts USING fts5(name, description, keywords, domain);

CREATE TABLE IF NOT EXISTS curated_docs (
    id                  TEXT PRIMARY KEY,
    tool_name           TEXT NOT NULL,
    tool_type           TEXT NOT NULL,
    service             TEXT,
    category            TEXT,
    description         TEXT NOT NULL DEFAULT '',
    full_documentation  TEXT NOT NULL DEFAULT '',
    operations          TEXT NOT NULL DEFAULT '[]',
    examples            TEXT NOT NULL DEFAULT '[]',
    keywords            TEXT NOT NULL DEFAULT '[]',
    priority            REAL NOT NULL DEFAULT 0.5,
    token_count         INTEGER NOT NULL DEFAULT 0,
    indexed_at          DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE VIRTUAL TABLE IF NOT EXISTS curated_docs_fts USING fts5(
    tool_name, description, full_documentation, keywords, category
);
"""

# Versions only ever grow; never edit a shipped entry.
# Each script runs through executescript(), which commits first.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Re-running on an up-to-date database is a no-op.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
