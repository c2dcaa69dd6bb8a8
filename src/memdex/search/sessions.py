"""Session expansion for hits inside dated activity logs.

A dated log is a markdown file whose registry ``file_type`` is one of the
configured log types. Sessions inside it start at lines beginning with the
header prefix (``## Session:`` by default) and run to the line before the next
header or to end of file.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from enum import Enum

from memdex.config import MemdexConfig
from memdex.db.models import CorruptState
from memdex.db.repository import Repository
from memdex.search.engine import ChunkHit, MatchSource

logger = logging.getLogger(__name__)

FULL_DOCUMENT = "Full Document"
PREAMBLE = "Preamble"

_HEADING_RE = re.compile(r"^(#{2,6})\s+(.+?)\s*$")
_STATUS_SCAN_LINES = 10


class ResultKind(str, Enum):
    CHUNK = "chunk"
    SESSION = "session"


@dataclass
class Session:
    file: str
    name: str
    line_start: int
    line_end: int
    status: str = "Unknown"


@dataclass
class RetrievalResult:
    """One ranked result: a raw chunk, or the session enclosing a chunk hit."""

    kind: ResultKind
    file: str
    line_start: int
    line_end: int
    content: str
    score: float
    source: MatchSource
    session_name: str | None = None
    match_context: str | None = None

    @classmethod
    def from_hit(cls, hit: ChunkHit) -> RetrievalResult:
        c = hit.chunk
        return cls(
            kind=ResultKind.CHUNK,
            file=c.file,
            line_start=c.line_start,
            line_end=c.line_end,
            content=c.content,
            score=hit.score,
            source=hit.source,
        )


def find_session(
    lines: list[str],
    line: int,
    header_prefix: str,
    last_line: int | None = None,
) -> tuple[str, int, int]:
    """Return ``(name, start, end)`` of the session containing 1-based *line*.

    Files without headers are one ``Full Document`` session. A span that lies
    wholly before the first header (*line* through *last_line*) is the
    ``Preamble`` session; one that starts there but reaches the first header
    belongs to that first session.
    """
    delimiters = [i + 1 for i, text in enumerate(lines) if text.startswith(header_prefix)]
    if not delimiters:
        return FULL_DOCUMENT, 1, max(len(lines), 1)
    if line < delimiters[0]:
        if (last_line or line) < delimiters[0]:
            return PREAMBLE, 1, delimiters[0] - 1
        line = delimiters[0]

    k = bisect.bisect_right(delimiters, line) - 1
    start = delimiters[k]
    end = delimiters[k + 1] - 1 if k + 1 < len(delimiters) else len(lines)
    name = lines[start - 1][len(header_prefix):].strip() or f"Session {k + 1}"
    return name, start, end


def summarize_session(
    lines: list[str],
    summary_sections: list[str],
    meta_prefixes: list[str],
) -> str:
    """Condense a session to its header, metadata and high-value subsections.

    A subsection is kept when its heading title (level 2 or deeper) is one of
    *summary_sections*. Inclusion stops at the next heading of the same or a
    higher level that is not itself a summary section.
    """
    if not lines:
        return ""
    wanted = {s.lower() for s in summary_sections}
    out = [lines[0]]
    level: int | None = None

    for line in lines[1:]:
        m = _HEADING_RE.match(line)
        if m:
            depth = len(m.group(1))
            title = m.group(2).rstrip(":").strip().lower()
            if title in wanted:
                level = depth
                out.append(line)
                continue
            if level is not None and depth <= level:
                level = None
        if level is not None or any(line.startswith(p) for p in meta_prefixes):
            out.append(line)
    return "\n".join(out)


class SessionExpander:
    """Expand chunk hits in dated logs to deduplicated sessions."""

    def __init__(self, repo: Repository, config: MemdexConfig) -> None:
        self._repo = repo
        self._config = config
        self._cfg = config.sessions
        self._log_types = set(config.index.log_types)
        self._types: dict[str, str | None] = {}
        self._lines: dict[str, list[str] | None] = {}

    def is_dated_log(self, file: str) -> bool:
        if file not in self._types:
            try:
                record = self._repo.get_indexed_file(file)
            except CorruptState as exc:
                logger.warning("Registry row for %s is corrupt (%s)", file, exc)
                record = None
            self._types[file] = record.file_type if record else None
        return self._types[file] in self._log_types

    def expand(self, hits: list[ChunkHit], summary: bool = False) -> list[RetrievalResult]:
        """Turn ranked hits into results, keeping rank order.

        Hits in dated logs become SESSION results; later hits resolving to an
        already-emitted ``(file, session name)`` are dropped. Other hits, and
        hits in logs that cannot be read, stay CHUNK results.
        """
        results: list[RetrievalResult] = []
        seen: set[tuple[str, str]] = set()

        for hit in hits:
            file = hit.chunk.file
            lines = self._read_lines(file) if self.is_dated_log(file) else None
            if lines is None:
                results.append(RetrievalResult.from_hit(hit))
                continue

            name, start, end = find_session(
                lines, hit.chunk.line_start, self._cfg.header_prefix, hit.chunk.line_end
            )
            if (file, name) in seen:
                continue
            seen.add((file, name))

            span = lines[start - 1 : end]
            content = (
                summarize_session(span, self._cfg.summary_sections, self._cfg.meta_prefixes)
                if summary
                else "\n".join(span)
            )
            results.append(
                RetrievalResult(
                    kind=ResultKind.SESSION,
                    file=file,
                    line_start=start,
                    line_end=end,
                    content=content,
                    score=hit.score,
                    source=hit.source,
                    session_name=name,
                    match_context=hit.chunk.content[:200],
                )
            )
        return results

    def list_sessions(self, limit: int = 20) -> list[Session]:
        """Sessions across dated logs, newest file first, with their status."""
        records = self._repo.list_indexed_files(sorted(self._log_types))
        sessions: list[Session] = []
        for record in sorted(records, key=lambda r: r.file, reverse=True):
            lines = self._read_lines(record.file)
            if lines is None:
                continue
            for i, line in enumerate(lines):
                if not line.startswith(self._cfg.header_prefix):
                    continue
                name, start, end = find_session(lines, i + 1, self._cfg.header_prefix)
                sessions.append(
                    Session(record.file, name, start, end, _status(lines[i + 1 : i + _STATUS_SCAN_LINES]))
                )
                if len(sessions) >= limit:
                    return sessions
        return sessions

    def _read_lines(self, file: str) -> list[str] | None:
        if file not in self._lines:
            try:
                text = self._config.resolve(file).read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning("Cannot read dated log %s (%s); using chunk result", file, exc)
                self._lines[file] = None
            else:
                self._lines[file] = text.splitlines()
        return self._lines[file]


def _status(lines: list[str]) -> str:
    for line in lines:
        if line.startswith("**Status:**"):
            return line[len("**Status:**"):].strip() or "Unknown"
    return "Unknown"
