"""Base chunker interface for memdex source files."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod

from memdex.db.models import Chunk


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Budgets are measured in characters; 4 characters approximate one token,
    so the defaults (1600 / 320) correspond to ~400-token chunks with an
    ~80-token overlap.
    """

    def __init__(self, chunk_chars: int = 1_600, overlap_chars: int = 320) -> None:
        if chunk_chars < 1:
            raise ValueError("chunk_chars must be >= 1")
        if not 0 <= overlap_chars < chunk_chars:
            raise ValueError("overlap_chars must be in [0, chunk_chars)")
        self.chunk_chars = chunk_chars
        self.overlap_chars = overlap_chars

    @abstractmethod
    def chunk(self, file: str, content: str) -> list[Chunk]:
        """Split *content* into Chunk objects for *file*.

        Args:
            file: Path of the source, relative to the corpus base directory.
            content: Full decoded text of the file.

        Returns:
            Ordered list of Chunk objects with sequential ``chunk_index``.
        """

    @staticmethod
    def content_hash(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()
