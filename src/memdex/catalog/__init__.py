"""memdex tool catalog: provider ingestion, keyword extraction, recommendation."""

from memdex.catalog.catalog import Recommendation, SyncStats, ToolCatalog, content_hash
from memdex.catalog.keywords import classify_domain, extract_keywords, task_keywords

__all__ = [
    "Recommendation",
    "SyncStats",
    "ToolCatalog",
    "content_hash",
    "classify_domain",
    "extract_keywords",
    "task_keywords",
]
