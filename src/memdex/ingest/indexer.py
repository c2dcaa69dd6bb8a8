"""Incremental, content-addressed indexing of the markdown corpus.

A file is re-chunked only when its SHA-256 differs from the hash in the
indexed_files registry (or when forced). Each file's chunk set and registry
row are swapped in one transaction by the repository.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from memdex.config import FileRule, MemdexConfig
from memdex.db.models import CorruptState, IndexedFile
from memdex.db.repository import Repository
from memdex.ingest.base import BaseChunker
from memdex.ingest.chunker import LineChunker

logger = logging.getLogger(__name__)

_MAX_DEPTH = 20


class FileOutcome(str, Enum):
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"  # vanished between discovery and read
    FAILED = "failed"


@dataclass
class FileResult:
    file: str
    outcome: FileOutcome
    chunks: int = 0
    file_type: str | None = None
    error: str | None = None


@dataclass
class IndexStats:
    """Summary of one ``index_all`` run."""

    indexed: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    removed: int = 0
    chunks: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    results: list[FileResult] = field(default_factory=list)

    def add(self, result: FileResult) -> None:
        self.results.append(result)
        if result.outcome is FileOutcome.INDEXED:
            self.indexed += 1
            self.chunks += result.chunks
        elif result.outcome is FileOutcome.UNCHANGED:
            self.unchanged += 1
        elif result.outcome is FileOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
        if result.file_type is not None:
            self.by_type[result.file_type] = self.by_type.get(result.file_type, 0) + 1


def classify_file(
    rel_path: str,
    rules: list[FileRule],
    default_type: str = "other",
    default_priority: float = 0.5,
) -> tuple[str, float]:
    """Return ``(file_type, priority)`` from the first rule matching *rel_path*."""
    p = PurePosixPath(rel_path)
    for rule in rules:
        if p.match(rule.pattern):
            return rule.file_type, rule.priority
    return default_type, default_priority


class Indexer:
    """Chunk markdown files into the store, skipping unchanged content."""

    def __init__(
        self,
        repo: Repository,
        config: MemdexConfig,
        chunker: BaseChunker | None = None,
    ) -> None:
        self._repo = repo
        self._config = config
        self._base = config.base_dir.resolve()
        self._chunker = chunker or LineChunker(
            chunk_chars=config.chunking.chunk_chars,
            overlap_chars=config.chunking.overlap_chars,
        )

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    def index_file(self, path: Path | str, force: bool = False) -> int:
        """Index one file and return the number of chunks written.

        Returns 0 without touching the store when the content hash matches the
        registry and *force* is false.

        Raises:
            FileNotFoundError: If *path* does not exist.
            OSError: If *path* cannot be read.
            sqlite3.Error: If the chunk swap cannot be written.
        """
        return self._index_path(Path(path), force).chunks

    def _index_path(self, path: Path, force: bool) -> FileResult:
        path = self._absolute(path)
        rel = self.relative_path(path)
        file_type, priority = classify_file(
            rel,
            self._config.index.rules,
            self._config.index.default_type,
            self._config.index.default_priority,
        )

        data = path.read_bytes()
        digest = hashlib.sha256(data).hexdigest()

        try:
            existing = self._repo.get_indexed_file(rel)
        except CorruptState as exc:
            logger.warning("Registry row for %s is corrupt (%s); re-indexing", rel, exc)
            existing = None

        if existing is not None and existing.content_hash == digest and not force:
            return FileResult(rel, FileOutcome.UNCHANGED, 0, file_type)

        content = data.decode("utf-8", errors="replace")
        chunks = self._chunker.chunk(rel, content)
        record = IndexedFile(
            file=rel,
            content_hash=digest,
            chunk_count=len(chunks),
            file_type=file_type,
            priority=priority,
        )
        self._repo.replace_file_chunks(record, chunks)
        logger.debug("Indexed %s: %d chunks (%s)", rel, len(chunks), file_type)
        return FileResult(rel, FileOutcome.INDEXED, len(chunks), file_type)

    # ------------------------------------------------------------------
    # Whole corpus
    # ------------------------------------------------------------------

    def index_all(
        self,
        force: bool = False,
        on_file: Callable[[FileResult], None] | None = None,
    ) -> IndexStats:
        """Index every discovered file, then prune vanished registry entries.

        Per-file failures never abort the batch.

        Args:
            force: Re-chunk files even when their hash is unchanged.
            on_file: Called with each file's result as soon as it is known.
        """
        stats = IndexStats()
        present: set[str] = set()

        for path in self.discover():
            rel = self.relative_path(path)
            try:
                result = self._index_path(path, force)
            except FileNotFoundError:
                logger.warning("File vanished during indexing, skipped: %s", rel)
                result = FileResult(rel, FileOutcome.SKIPPED)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", rel, exc)
                present.add(rel)
                result = FileResult(rel, FileOutcome.FAILED, error=str(exc))
            except sqlite3.Error as exc:
                logger.warning("Cannot store chunks for %s: %s", rel, exc)
                present.add(rel)
                result = FileResult(rel, FileOutcome.FAILED, error=f"database error: {exc}")
            else:
                present.add(rel)
            stats.add(result)
            if on_file is not None:
                on_file(result)

        for rel in self._repo.list_indexed_paths():
            if rel in present:
                continue
            try:
                self._repo.delete_file(rel)
            except sqlite3.Error as exc:
                logger.warning("Cannot prune %s: %s", rel, exc)
                stats.failed += 1
                continue
            stats.removed += 1
            logger.debug("Pruned vanished file %s", rel)

        return stats

    def discover(self) -> list[Path]:
        """Return ``*.md`` files under the base directory in sorted order."""
        exclude = list(self._config.index.exclude_dirs)
        data_dir = PurePosixPath(self._config.paths.data_dir).name
        if data_dir:
            exclude.append(data_dir)
        return sorted(_scan_dir(self._base, exclude, depth=0))

    def _absolute(self, path: Path) -> Path:
        return path if path.is_absolute() else self._config.base_dir / path

    def relative_path(self, path: Path) -> str:
        """POSIX path of *path* relative to the base directory."""
        try:
            return self._absolute(path).resolve().relative_to(self._base).as_posix()
        except ValueError:
            return path.as_posix()


def _scan_dir(directory: Path, exclude: list[str], depth: int) -> list[Path]:
    if depth > _MAX_DEPTH:
        return []
    try:
        entries = sorted(directory.iterdir())
    except PermissionError:
        logger.warning("Permission denied, skipped directory: %s", directory)
        return []
    files: list[Path] = []
    for entry in entries:
        if any(fnmatch.fnmatch(entry.name, pat) for pat in exclude):
            continue
        if entry.is_dir():
            files.extend(_scan_dir(entry, exclude, depth + 1))
        elif entry.is_file() and entry.suffix.lower() == ".md":
            files.append(entry)
    return files
