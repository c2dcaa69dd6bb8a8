"""Line-window chunker with trailing overlap."""

from __future__ import annotations

import re

from memdex.db.models import Chunk
from memdex.ingest.base import BaseChunker

_HEADING_RE = re.compile(r"^#{1,6}\s+\S")


class LineChunker(BaseChunker):
    """Accumulate whole lines into character-budgeted, overlapping chunks.

    Strategy:
    - Buffer size is the sum of ``len(line) + 1`` over buffered lines.
    - After adding a line, a buffer larger than ``chunk_chars`` is closed as a
      chunk (the line that crossed the budget is included).
    - The next buffer is seeded with the longest run of trailing lines of the
      closed buffer whose size fits in ``overlap_chars``.
    - At end of file the remainder is flushed if it holds a line not yet
      emitted.

    Line numbers are 1-based and inclusive. Each chunk's content is exactly
    ``"\\n".join(lines[line_start - 1:line_end])``.
    """

    def chunk(self, file: str, content: str) -> list[Chunk]:
        lines = content.splitlines()
        if not lines:
            return []

        headers = _headers_by_line(lines)
        spans: list[tuple[int, int]] = []

        start = 0  # 0-based index of the buffer's first line
        size = 0
        emitted = 0  # lines [0, emitted) already belong to some chunk
        for i, line in enumerate(lines):
            size += len(line) + 1
            if size <= self.chunk_chars:
                continue
            spans.append((start, i))
            emitted = i + 1

            seed = i + 1
            seed_size = 0
            while seed - 1 > start:
                cost = len(lines[seed - 1]) + 1
                if seed_size + cost > self.overlap_chars:
                    break
                seed -= 1
                seed_size += cost
            start, size = seed, seed_size

        if emitted < len(lines):
            spans.append((start, len(lines) - 1))

        chunks: list[Chunk] = []
        for index, (first, last) in enumerate(spans):
            text = "\n".join(lines[first : last + 1])
            chunks.append(
                Chunk(
                    file=file,
                    line_start=first + 1,
                    line_end=last + 1,
                    content=text,
                    content_hash=self.content_hash(text),
                    chunk_index=index,
                    section_header=headers[first],
                )
            )
        return chunks


def _headers_by_line(lines: list[str]) -> list[str | None]:
    """Nearest markdown heading at or above each line (None before the first)."""
    current: str | None = None
    out: list[str | None] = []
    for line in lines:
        if _HEADING_RE.match(line):
            current = line.lstrip("#").strip()
        out.append(current)
    return out
