"""Single retrieval entry point dispatching on an explicit mode."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from memdex.catalog.keywords import fts_or_query
from memdex.config import MemdexConfig
from memdex.db.repository import Repository
from memdex.search.engine import HybridSearchEngine
from memdex.search.sessions import RetrievalResult, SessionExpander

_WORD_RE = re.compile(r"[a-z0-9]+")


class RetrievalMode(str, Enum):
    CHUNK = "chunk"
    SESSION = "session"
    CONTEXT = "context"


@dataclass
class RetrievalRequest:
    query: str
    mode: RetrievalMode = RetrievalMode.SESSION
    limit: int | None = None
    file_filter: str | None = None


def context_terms(
    text: str,
    stop_words: frozenset[str],
    min_length: int = 4,
    count: int = 5,
) -> list[str]:
    """First *count* distinct non-stop words of at least *min_length* chars."""
    terms: list[str] = []
    for word in _WORD_RE.findall(text.lower()):
        if len(word) >= min_length and word not in stop_words and word not in terms:
            terms.append(word)
            if len(terms) == count:
                break
    return terms


class Retriever:
    """Facade over hybrid search and session expansion."""

    def __init__(self, repo: Repository, config: MemdexConfig) -> None:
        self._config = config
        self.engine = HybridSearchEngine(repo, config.search)
        self.expander = SessionExpander(repo, config)

    def run(self, request: RetrievalRequest) -> list[RetrievalResult]:
        limit = request.limit or self._config.search.limit
        if request.mode is RetrievalMode.CHUNK:
            hits = self.engine.search(request.query, limit, request.file_filter)
            return [RetrievalResult.from_hit(h) for h in hits]
        if request.mode is RetrievalMode.SESSION:
            return self._sessions(request.query, limit, request.file_filter, summary=False)
        if request.mode is RetrievalMode.CONTEXT:
            return self._context(request.query, limit, request.file_filter)
        raise ValueError(f"Unknown retrieval mode: {request.mode!r}")

    def _sessions(
        self, query: str, limit: int, file_filter: str | None, summary: bool
    ) -> list[RetrievalResult]:
        hits = self.engine.search(query, limit * 2, file_filter)
        return self.expander.expand(hits, summary=summary)[:limit]

    def _context(self, task: str, limit: int, file_filter: str | None) -> list[RetrievalResult]:
        cfg = self._config.search
        terms = context_terms(
            task, self._config.keywords.stop_words, cfg.context_min_length, cfg.context_terms
        )
        if not terms:
            return []
        return self._sessions(fts_or_query(terms, len(terms)), limit, file_filter, summary=True)
