"""Hybrid chunk search: BM25 full-text pass merged with a substring pass.

Score convention follows bm25(): lower is better. Merge rule:
  full-text hit        normalized_bm25 * fts_weight
  substring-only hit   substring_placeholder * substring_weight
  found by both        full-text score * overlap_boost
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from memdex.config import SearchCfg
from memdex.db.models import Chunk
from memdex.db.repository import QuerySyntaxError, Repository

logger = logging.getLogger(__name__)


class MatchSource(str, Enum):
    FULL_TEXT = "fts"
    SUBSTRING = "substring"
    BOTH = "both"


@dataclass
class ChunkHit:
    chunk: Chunk
    score: float
    source: MatchSource


def normalize_bm25(raw: float, strongest: float) -> float:
    """Map a raw bm25 score into ``[-2, -1)`` relative to the strongest hit.

    FTS5 clamps IDF to a tiny epsilon for terms present in most rows, so raw
    magnitudes are not comparable to a fixed placeholder. Order is preserved.
    """
    if strongest >= 0:
        return -2.0
    return -(1.0 + raw / strongest)


class HybridSearchEngine:
    """Rank chunks against a free-text query."""

    def __init__(self, repo: Repository, config: SearchCfg | None = None) -> None:
        self._repo = repo
        self._cfg = config or SearchCfg()

    def search(
        self,
        query: str,
        limit: int | None = None,
        file_filter: str | None = None,
    ) -> list[ChunkHit]:
        """Return up to *limit* hits, best (lowest score) first.

        A query FTS5 cannot parse silently degrades to the substring pass.
        """
        query = query.strip()
        if not query:
            return []
        limit = limit or self._cfg.limit
        fetch = limit * 2

        try:
            fts = self._repo.search_chunks_fts(query, fetch, file_filter)
        except QuerySyntaxError as exc:
            logger.debug("FTS query %r rejected (%s); substring pass only", query, exc)
            fts = []
        substring = self._repo.search_chunks_substring(query, fetch, file_filter)

        merged: dict[str, ChunkHit] = {}
        if fts:
            strongest = min(score for _, score in fts)
            for chunk, raw in fts:
                merged[chunk.id] = ChunkHit(
                    chunk,
                    normalize_bm25(raw, strongest) * self._cfg.fts_weight,
                    MatchSource.FULL_TEXT,
                )
        for chunk in substring:
            hit = merged.get(chunk.id)
            if hit is not None:
                hit.score *= self._cfg.overlap_boost
                hit.source = MatchSource.BOTH
            else:
                merged[chunk.id] = ChunkHit(
                    chunk,
                    self._cfg.substring_placeholder * self._cfg.substring_weight,
                    MatchSource.SUBSTRING,
                )

        # sorted() is stable: ties keep merge order, full-text hits first.
        return sorted(merged.values(), key=lambda h: h.score)[:limit]
