"""memdex database layer."""

from memdex.db.connection import Database, StorageUnavailable
from memdex.db.migrations import MIGRATIONS, run_migrations
from memdex.db.models import CorruptState, RecordKind
from memdex.db.repository import QuerySyntaxError, Repository
from memdex.db.schema import initialize

__all__ = [
    "Database",
    "StorageUnavailable",
    "CorruptState",
    "RecordKind",
    "QuerySyntaxError",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
