"""Tests for HybridSearchEngine ranking."""

from __future__ import annotations

import pytest

from memdex.config import SearchCfg
from memdex.db.models import Chunk, IndexedFile
from memdex.search.engine import HybridSearchEngine, MatchSource, normalize_bm25


def _index(repo, file: str, *texts: str) -> None:
    chunks = [
        Chunk(file=file, line_start=i + 1, line_end=i + 1, content=t, content_hash=f"h{i}", chunk_index=i)
        for i, t in enumerate(texts)
    ]
    repo.replace_file_chunks(IndexedFile(file=file, content_hash=file, chunk_count=0), chunks)


# ------------------------------------------------------------------
# normalize_bm25
# ------------------------------------------------------------------

def test_strongest_hit_normalizes_to_minus_two():
    assert normalize_bm25(-4.2, -4.2) == pytest.approx(-2.0)


def test_weaker_hit_stays_in_range_and_order():
    strong = normalize_bm25(-4.0, -4.0)
    weak = normalize_bm25(-1.0, -4.0)
    assert -2.0 <= strong < weak < -1.0


def test_non_negative_strongest_collapses_to_minus_two():
    assert normalize_bm25(0.0, 0.0) == -2.0
    assert normalize_bm25(1e-7, 1e-7) == -2.0


# ------------------------------------------------------------------
# Merge rules
# ------------------------------------------------------------------

def test_empty_query_returns_nothing(repo):
    _index(repo, "a.md", "webhook")
    assert HybridSearchEngine(repo).search("   ") == []


def test_both_passes_boost_and_substring_only_weighted(repo):
    _index(repo, "a.md", "fixed the webhook retry loop", "webhooked events piled up")
    hits = HybridSearchEngine(repo).search("webhook")

    assert [h.chunk.content for h in hits] == [
        "fixed the webhook retry loop",
        "webhooked events piled up",
    ]
    assert hits[0].source is MatchSource.BOTH
    assert hits[0].score == pytest.approx(-2.0 * 0.7 * 1.2)
    assert hits[1].source is MatchSource.SUBSTRING
    assert hits[1].score == pytest.approx(-1.0 * 0.3)


def test_fts_only_hit(repo):
    _index(repo, "a.md", "stripe webhook signature")
    hits = HybridSearchEngine(repo).search("signature stripe")
    assert len(hits) == 1
    assert hits[0].source is MatchSource.FULL_TEXT
    assert hits[0].score == pytest.approx(-2.0 * 0.7)


def test_syntax_error_falls_back_to_substring(repo):
    _index(repo, "a.md", "bumped api.v2 client")
    hits = HybridSearchEngine(repo).search("api.v2")
    assert len(hits) == 1
    assert hits[0].source is MatchSource.SUBSTRING


def test_results_ordered_by_ascending_score(repo):
    _index(
        repo,
        "a.md",
        "deploy deploy deploy preview",
        "deploy once",
        "redeployment notes",
    )
    hits = HybridSearchEngine(repo).search("deploy")
    scores = [h.score for h in hits]
    assert scores == sorted(scores)
    assert hits[-1].chunk.content == "redeployment notes"


def test_limit_applies_after_merge(repo):
    _index(repo, "a.md", *[f"cache entry {i}" for i in range(10)])
    hits = HybridSearchEngine(repo, SearchCfg(limit=3)).search("cache")
    assert len(hits) == 3
    assert len(HybridSearchEngine(repo).search("cache", limit=7)) == 7


def test_file_filter(repo):
    _index(repo, "memory/a.md", "token refresh")
    _index(repo, "docs/b.md", "token refresh")
    hits = HybridSearchEngine(repo).search("token", file_filter="memory")
    assert {h.chunk.file for h in hits} == {"memory/a.md"}


def test_no_matches(repo):
    _index(repo, "a.md", "nothing relevant")
    assert HybridSearchEngine(repo).search("kubernetes") == []


def test_custom_weights(repo):
    _index(repo, "a.md", "webhooked")
    hits = HybridSearchEngine(repo, SearchCfg(substring_weight=0.5)).search("webhook")
    assert hits[0].score == pytest.approx(-0.5)
