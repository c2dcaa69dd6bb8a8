"""SQLite connection layer with an FTS5 capability check."""

from __future__ import annotations

import sqlite3
from pathlib import Path


class StorageUnavailable(RuntimeError):
    """The embedded store cannot be used (no FTS5 support or unopenable file)."""


class Database:
    """Per-project SQLite database with FTS5 full-text search support."""

    def __init__(self, db_path: Path | str) -> None:
        """Remember where the index lives; nothing is opened until connect().

        Args:
            db_path: Path to the SQLite database file (created if missing,
                along with its parent directory).
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, verify FTS5 is compiled in, and return it.

        Raises:
            StorageUnavailable: If the file cannot be opened or SQLite lacks FTS5.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailable(f"Cannot open database '{self.db_path}': {exc}") from exc

        conn.row_factory = sqlite3.Row
        try:
            fts5 = _has_fts5(conn)
        except sqlite3.DatabaseError as exc:
            conn.close()
            raise StorageUnavailable(f"Cannot open database '{self.db_path}': {exc}") from exc
        if not fts5:
            conn.close()
            raise StorageUnavailable(
                f"SQLite {sqlite3.sqlite_version} was built without the FTS5 extension"
            )
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as exc:
            conn.close()
            raise StorageUnavailable(f"Cannot open database '{self.db_path}': {exc}") from exc
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Connect and hand back the open connection."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection on exit."""
        if self._conn:
            self._conn.close()
            self._conn = None


def _has_fts5(conn: sqlite3.Connection) -> bool:
    """Return True if this SQLite build can create FTS5 tables.

    Raises:
        sqlite3.DatabaseError: If the file is not a usable SQLite database.
    """
    conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    try:
        conn.execute("CREATE VIRTUAL TABLE IF NOT EXISTS temp._fts5_check USING fts5(x)")
        conn.execute("DROP TABLE IF EXISTS temp._fts5_check")
    except sqlite3.OperationalError:
        return False
    return True
