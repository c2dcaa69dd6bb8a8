"""Repository pattern for all memdex database operations.

Single interface for: the indexed-file registry, chunks, the tool catalog,
curated docs, and their FTS5 indexes. FTS rows share the base table's rowid
and are kept in sync here; no other module writes SQL.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from typing import TypeVar

from memdex.db.models import (
    Chunk,
    CorruptState,
    CuratedDoc,
    IndexedFile,
    ToolRecord,
    encode_list,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T", Chunk, ToolRecord, CuratedDoc, IndexedFile)


class QuerySyntaxError(ValueError):
    """FTS5 rejected a MATCH expression."""


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so *term* matches literally (ESCAPE '\\')."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(term: str) -> str:
    return f"%{escape_like(term)}%"


class Repository:
    """Data access layer for all memdex database entities.

    Wraps an open sqlite3.Connection whose schema has been initialised
    (see memdex.db.schema.initialize). The connection is owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Indexed-file registry
    # ------------------------------------------------------------------

    def get_indexed_file(self, file: str) -> IndexedFile | None:
        """Return the registry row for *file*, or None if never indexed.

        Raises:
            CorruptState: If the stored row has an unexpected shape.
        """
        row = self._conn.execute(
            "SELECT * FROM indexed_files WHERE file = ?", (file,)
        ).fetchone()
        return IndexedFile.from_row(row) if row else None

    def list_indexed_files(self, file_types: Sequence[str] | None = None) -> list[IndexedFile]:
        """Return registry rows ordered by path, skipping corrupt ones.

        Args:
            file_types: Restrict to these file types (all types when None).
        """
        sql = "SELECT * FROM indexed_files"
        params: tuple = ()
        if file_types is not None:
            if not file_types:
                return []
            placeholders = ",".join("?" * len(file_types))
            sql += f" WHERE file_type IN ({placeholders})"
            params = tuple(file_types)
        rows = self._conn.execute(sql + " ORDER BY file", params).fetchall()
        return _decode_all(IndexedFile, rows)

    def list_indexed_paths(self) -> list[str]:
        """Every registered path, including rows that fail to decode."""
        rows = self._conn.execute("SELECT file FROM indexed_files ORDER BY file").fetchall()
        return [str(r["file"]) for r in rows]

    def replace_file_chunks(self, record: IndexedFile, chunks: Sequence[Chunk]) -> None:
        """Atomically swap *record.file*'s chunks and registry row.

        Old chunks, their FTS rows and the registry row are replaced in a
        single transaction; readers see either the old set or the new one.
        Each chunk's ``rowid`` is set to its assigned value.
        """
        with self._conn:
            self._delete_chunks(record.file)
            for chunk in chunks:
                cur = self._conn.execute(
                    """
                    INSERT INTO chunks
                        (id, file, line_start, line_end, content, content_hash,
                         chunk_index, section_header)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        chunk.id,
                        chunk.file,
                        chunk.line_start,
                        chunk.line_end,
                        chunk.content,
                        chunk.content_hash,
                        chunk.chunk_index,
                        chunk.section_header,
                    ),
                )
                chunk.rowid = cur.lastrowid
                self._conn.execute(
                    "INSERT INTO chunks_fts(rowid, content) VALUES (?, ?)",
                    (chunk.rowid, chunk.content),
                )
            self._conn.execute(
                """
                INSERT OR REPLACE INTO indexed_files
                    (file, content_hash, chunk_count, file_type, priority, indexed_at)
                VALUES (?, ?, ?, ?, ?, datetime('now'))
                """,
                (
                    record.file,
                    record.content_hash,
                    len(chunks),
                    record.file_type,
                    record.priority,
                ),
            )

    def delete_file(self, file: str) -> None:
        """Remove *file*'s chunks, FTS rows and registry row in one transaction."""
        with self._conn:
            self._delete_chunks(file)
            self._conn.execute("DELETE FROM indexed_files WHERE file = ?", (file,))

    def _delete_chunks(self, file: str) -> None:
        self._conn.execute(
            "DELETE FROM chunks_fts WHERE rowid IN (SELECT rowid FROM chunks WHERE file = ?)",
            (file,),
        )
        self._conn.execute("DELETE FROM chunks WHERE file = ?", (file,))

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def list_chunks_by_file(self, file: str) -> list[Chunk]:
        """Return *file*'s chunks in chunk_index order."""
        rows = self._conn.execute(
            "SELECT rowid, * FROM chunks WHERE file = ? ORDER BY chunk_index", (file,)
        ).fetchall()
        return _decode_all(Chunk, rows)

    def count_chunks(self, file: str | None = None) -> int:
        if file is None:
            row = self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE file = ?", (file,)
            ).fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Chunk search
    # ------------------------------------------------------------------

    def search_chunks_fts(
        self, query: str, limit: int, file_filter: str | None = None
    ) -> list[tuple[Chunk, float]]:
        """BM25 full-text search. Returns (chunk, raw bm25) best-first.

        bm25() is negative; lower (more negative) = better match.

        Raises:
            QuerySyntaxError: If FTS5 cannot parse *query*.
        """
        sql = """
            SELECT c.rowid AS rowid, c.*, bm25(chunks_fts) AS score
            FROM chunks_fts JOIN chunks c ON c.rowid = chunks_fts.rowid
            WHERE chunks_fts MATCH ?
        """
        params: list = [query]
        if file_filter:
            sql += " AND c.file LIKE ? ESCAPE '\\'"
            params.append(_contains(file_filter))
        sql += " ORDER BY score LIMIT ?"
        params.append(limit)
        rows = self._match(sql, params)
        return [(chunk, float(row["score"])) for chunk, row in _decode_pairs(Chunk, rows)]

    def search_chunks_substring(
        self, needle: str, limit: int, file_filter: str | None = None
    ) -> list[Chunk]:
        """Chunks whose content contains *needle* literally, newest first."""
        sql = "SELECT rowid, * FROM chunks WHERE content LIKE ? ESCAPE '\\'"
        params: list = [_contains(needle)]
        if file_filter:
            sql += " AND file LIKE ? ESCAPE '\\'"
            params.append(_contains(file_filter))
        sql += " ORDER BY rowid DESC LIMIT ?"
        params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return _decode_all(Chunk, rows)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def get_tool(self, tool_id: str) -> ToolRecord | None:
        """Return a tool by id, or None.

        Raises:
            CorruptState: If the stored row has an unexpected shape.
        """
        row = self._conn.execute("SELECT * FROM tools WHERE id = ?", (tool_id,)).fetchone()
        return ToolRecord.from_row(row) if row else None

    def list_tool_ids(self) -> list[str]:
        rows = self._conn.execute("SELECT id FROM tools ORDER BY id").fetchall()
        return [str(r["id"]) for r in rows]

    def list_tools(self, tool_type: str | None = None, domain: str | None = None) -> list[ToolRecord]:
        """Return catalog records, optionally filtered, by type, domain, name."""
        clauses: list[str] = []
        params: list = []
        if tool_type:
            clauses.append("type = ?")
            params.append(tool_type)
        if domain:
            clauses.append("domain = ?")
            params.append(domain)
        sql = "SELECT * FROM tools"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        rows = self._conn.execute(sql + " ORDER BY type, domain, name", params).fetchall()
        return _decode_all(ToolRecord, rows)

    def upsert_tool(self, tool: ToolRecord) -> None:
        """Insert or update *tool*, keeping its stored usage counters.

        A stored use_count that is not an integer is reset to 0.
        """
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO tools
                    (id, name, type, source, domain, description, keywords,
                     parameters, examples, priority, use_count, last_used,
                     content_hash, indexed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, datetime('now'))
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    type = excluded.type,
                    source = excluded.source,
                    domain = excluded.domain,
                    description = excluded.description,
                    keywords = excluded.keywords,
                    parameters = excluded.parameters,
                    examples = excluded.examples,
                    priority = excluded.priority,
                    use_count = CASE WHEN typeof(tools.use_count) = 'integer'
                                     THEN tools.use_count ELSE 0 END,
                    content_hash = excluded.content_hash,
                    indexed_at = excluded.indexed_at
                """,
                (
                    tool.id,
                    tool.name,
                    tool.type.value,
                    tool.source,
                    tool.domain,
                    tool.description,
                    encode_list(tool.keywords),
                    _json_object(tool.parameters),
                    encode_list(tool.examples),
                    tool.priority,
                    tool.content_hash,
                ),
            )
            rowid = self._conn.execute(
                "SELECT rowid FROM tools WHERE id = ?", (tool.id,)
            ).fetchone()[0]
            self._conn.execute("DELETE FROM tools_fts WHERE rowid = ?", (rowid,))
            self._conn.execute(
                "INSERT INTO tools_fts(rowid, name, description, keywords, domain) "
                "VALUES (?, ?, ?, ?, ?)",
                (rowid, tool.name, tool.description, " ".join(tool.keywords), tool.domain),
            )

    def delete_tools(self, tool_ids: Iterable[str]) -> int:
        """Delete tools and their FTS rows. Returns the number removed."""
        ids = list(tool_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with self._conn:
            self._conn.execute(
                f"DELETE FROM tools_fts WHERE rowid IN "
                f"(SELECT rowid FROM tools WHERE id IN ({placeholders}))",
                ids,
            )
            cur = self._conn.execute(f"DELETE FROM tools WHERE id IN ({placeholders})", ids)
        return cur.rowcount

    def search_tools_fts(self, query: str, limit: int) -> list[ToolRecord]:
        """Tools matching an FTS5 *query*: priority DESC, then bm25, then use_count.

        Raises:
            QuerySyntaxError: If FTS5 cannot parse *query*.
        """
        rows = self._match(
            """
            SELECT t.*, bm25(tools_fts) AS score
            FROM tools_fts JOIN tools t ON t.rowid = tools_fts.rowid
            WHERE tools_fts MATCH ?
            ORDER BY t.priority DESC, score, t.use_count DESC LIMIT ?
            """,
            [query, limit],
        )
        return _decode_all(ToolRecord, rows)

    def search_tools_substring(self, terms: Sequence[str], limit: int) -> list[ToolRecord]:
        """Tools whose name, description or keywords contain any of *terms*."""
        if not terms:
            return []
        clause = " OR ".join(
            "(name LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\' "
            "OR keywords LIKE ? ESCAPE '\\')"
            for _ in terms
        )
        params: list = []
        for term in terms:
            params.extend([_contains(term)] * 3)
        params.append(limit)
        rows = self._conn.execute(
            f"SELECT * FROM tools WHERE {clause} ORDER BY priority DESC, id LIMIT ?",
            params,
        ).fetchall()
        return _decode_all(ToolRecord, rows)

    def record_tool_use(self, tool_ids: Iterable[str]) -> None:
        """Increment use_count and stamp last_used for each id."""
        ids = list(tool_ids)
        if not ids:
            return
        placeholders = ",".join("?" * len(ids))
        with self._conn:
            self._conn.execute(
                f"UPDATE tools SET use_count = use_count + 1, last_used = datetime('now') "
                f"WHERE id IN ({placeholders})",
                ids,
            )

    def tool_domain_counts(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT domain, COUNT(*) AS n FROM tools GROUP BY domain ORDER BY n DESC, domain"
        ).fetchall()
        return {str(r["domain"]): int(r["n"]) for r in rows}

    # ------------------------------------------------------------------
    # Curated docs
    # ------------------------------------------------------------------

    def replace_docs(self, docs: Sequence[CuratedDoc]) -> None:
        """Replace every curated doc in one transaction."""
        with self._conn:
            self._conn.execute("DELETE FROM curated_docs_fts")
            self._conn.execute("DELETE FROM curated_docs")
            for doc in docs:
                cur = self._conn.execute(
                    """
                    INSERT INTO curated_docs
                        (id, tool_name, tool_type, service, category, description,
                         full_documentation, operations, examples, keywords,
                         priority, token_count)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        doc.id,
                        doc.tool_name,
                        doc.tool_type,
                        doc.service,
                        doc.category,
                        doc.description,
                        doc.full_documentation,
                        encode_list(doc.operations),
                        encode_list(doc.examples),
                        encode_list(doc.keywords),
                        doc.priority,
                        doc.token_count,
                    ),
                )
                self._conn.execute(
                    """
                    INSERT INTO curated_docs_fts
                        (rowid, tool_name, description, full_documentation, keywords, category)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        cur.lastrowid,
                        doc.tool_name,
                        doc.description,
                        doc.full_documentation,
                        " ".join(doc.keywords),
                        doc.category or "",
                    ),
                )

    def list_docs(self) -> list[CuratedDoc]:
        rows = self._conn.execute(
            "SELECT * FROM curated_docs ORDER BY priority DESC, tool_name"
        ).fetchall()
        return _decode_all(CuratedDoc, rows)

    def search_docs_fts(self, query: str, limit: int) -> list[CuratedDoc]:
        """Docs matching *query*, ordered by priority DESC then bm25.

        Raises:
            QuerySyntaxError: If FTS5 cannot parse *query*.
        """
        rows = self._match(
            """
            SELECT d.*, bm25(curated_docs_fts) AS score
            FROM curated_docs_fts JOIN curated_docs d ON d.rowid = curated_docs_fts.rowid
            WHERE curated_docs_fts MATCH ?
            ORDER BY d.priority DESC, score LIMIT ?
            """,
            [query, limit],
        )
        return _decode_all(CuratedDoc, rows)

    def search_docs_substring(self, terms: Sequence[str], limit: int) -> list[CuratedDoc]:
        """Docs whose name, description or keywords contain any of *terms*."""
        if not terms:
            return []
        clause = " OR ".join(
            "(tool_name LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\' "
            "OR keywords LIKE ? ESCAPE '\\')"
            for _ in terms
        )
        params: list = []
        for term in terms:
            params.extend([_contains(term)] * 3)
        params.append(limit)
        rows = self._conn.execute(
            f"SELECT * FROM curated_docs WHERE {clause} ORDER BY priority DESC, tool_name LIMIT ?",
            params,
        ).fetchall()
        return _decode_all(CuratedDoc, rows)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def counts(self) -> dict[str, int]:
        """Row counts for the status panel."""
        out: dict[str, int] = {}
        for key, table in (
            ("files", "indexed_files"),
            ("chunks", "chunks"),
            ("tools", "tools"),
            ("docs", "curated_docs"),
        ):
            out[key] = int(self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
        return out

    def file_type_counts(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT file_type, COUNT(*) AS n FROM indexed_files GROUP BY file_type ORDER BY file_type"
        ).fetchall()
        return {str(r["file_type"]): int(r["n"]) for r in rows}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _match(self, sql: str, params: list) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as exc:
            raise QuerySyntaxError(str(exc)) from exc


def _json_object(value: dict) -> str:
    return json.dumps(value, sort_keys=True)


def _decode_pairs(model: type[_T], rows: Iterable[sqlite3.Row]) -> list[tuple[_T, sqlite3.Row]]:
    out: list[tuple[_T, sqlite3.Row]] = []
    for row in rows:
        try:
            out.append((model.from_row(row), row))
        except CorruptState as exc:
            logger.warning("Skipping corrupt %s row: %s", model.kind.value, exc)
    return out


def _decode_all(model: type[_T], rows: Iterable[sqlite3.Row]) -> list[_T]:
    return [obj for obj, _ in _decode_pairs(model, rows)]
