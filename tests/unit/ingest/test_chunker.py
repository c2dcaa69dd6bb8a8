"""Tests for LineChunker."""

from __future__ import annotations

import hashlib

import pytest

from memdex.ingest.chunker import LineChunker


def _lines(n: int, width: int = 99) -> str:
    """n lines of exactly *width* characters (each costs width + 1)."""
    return "\n".join(f"{i:03d}" + "x" * (width - 3) for i in range(1, n + 1))


def _expected_content(content: str, start: int, end: int) -> str:
    return "\n".join(content.splitlines()[start - 1 : end])


# ------------------------------------------------------------------
# Basic behaviour
# ------------------------------------------------------------------

def test_empty_content_returns_no_chunks():
    assert LineChunker().chunk("a.md", "") == []


def test_small_file_is_one_chunk():
    content = "line one\nline two\n" + "z" * 180
    chunks = LineChunker().chunk("a.md", content)
    assert len(chunks) == 1
    assert chunks[0].line_start == 1
    assert chunks[0].line_end == 3
    assert chunks[0].chunk_index == 0
    assert chunks[0].file == "a.md"


def test_long_file_splits_with_overlap():
    content = _lines(30)
    chunks = LineChunker(chunk_chars=1_600, overlap_chars=320).chunk("memory/a.md", content)
    assert [(c.line_start, c.line_end) for c in chunks] == [(1, 17), (15, 30)]
    assert [c.chunk_index for c in chunks] == [0, 1]


def test_chunk_content_matches_line_span():
    content = _lines(45)
    for c in LineChunker().chunk("a.md", content):
        assert c.content == _expected_content(content, c.line_start, c.line_end)


def test_chunks_cover_every_line():
    content = _lines(60, width=57)
    chunks = LineChunker(chunk_chars=500, overlap_chars=100).chunk("a.md", content)
    covered = set()
    for c in chunks:
        covered.update(range(c.line_start, c.line_end + 1))
    assert covered == set(range(1, 61))


def test_chunk_starts_strictly_increase():
    content = _lines(80, width=40)
    chunks = LineChunker(chunk_chars=300, overlap_chars=120).chunk("a.md", content)
    starts = [c.line_start for c in chunks]
    assert starts == sorted(set(starts))


def test_zero_overlap_chunks_are_disjoint():
    content = _lines(30)
    chunks = LineChunker(chunk_chars=1_000, overlap_chars=0).chunk("a.md", content)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt.line_start == prev.line_end + 1


def test_single_oversized_line_is_own_chunk():
    content = "y" * 5_000
    chunks = LineChunker().chunk("a.md", content)
    assert len(chunks) == 1
    assert chunks[0].content == content


def test_content_hash_is_sha256_of_text():
    chunks = LineChunker().chunk("a.md", "hello\nworld")
    assert chunks[0].content_hash == hashlib.sha256(b"hello\nworld").hexdigest()


# ------------------------------------------------------------------
# Section headers
# ------------------------------------------------------------------

def test_section_header_is_nearest_heading_above_start():
    body = "\n".join(["# Title", "intro"] + ["## Session: Morning"] + ["w" * 99] * 20)
    chunks = LineChunker(chunk_chars=600, overlap_chars=0).chunk("a.md", body)
    assert chunks[0].section_header == "Title"
    assert chunks[-1].section_header == "Session: Morning"


def test_no_heading_means_no_section_header():
    chunks = LineChunker().chunk("a.md", "plain text")
    assert chunks[0].section_header is None


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

@pytest.mark.parametrize("chunk_chars,overlap", [(0, 0), (100, 100), (100, -1)])
def test_invalid_budgets_rejected(chunk_chars, overlap):
    with pytest.raises(ValueError):
        LineChunker(chunk_chars=chunk_chars, overlap_chars=overlap)
