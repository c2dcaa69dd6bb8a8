"""memdex ingest pipeline: line chunker and incremental indexer."""

from memdex.ingest.base import BaseChunker
from memdex.ingest.chunker import LineChunker
from memdex.ingest.indexer import FileOutcome, FileResult, Indexer, IndexStats, classify_file

__all__ = [
    "BaseChunker",
    "LineChunker",
    "Indexer",
    "IndexStats",
    "FileOutcome",
    "FileResult",
    "classify_file",
]
