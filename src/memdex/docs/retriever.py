"""Read-only retrieval over curated reference docs."""

from __future__ import annotations

import logging
from pathlib import Path

from memdex.catalog.keywords import fts_or_query, task_keywords
from memdex.config import MemdexConfig
from memdex.db.models import CuratedDoc
from memdex.db.repository import QuerySyntaxError, Repository
from memdex.docs.loader import load_docs

logger = logging.getLogger(__name__)

_MAX_OPERATIONS = 5


class DocRetriever:
    """Query curated docs like the tool catalog, without usage learning."""

    def __init__(self, repo: Repository, config: MemdexConfig) -> None:
        self._repo = repo
        self._config = config

    def extract(self, path: Path | None = None) -> list[CuratedDoc]:
        """Replace all stored docs with the contents of the docs YAML file."""
        docs = load_docs(path or self._config.docs_path, self._config.keywords)
        self._repo.replace_docs(docs)
        return docs

    def retrieve(self, task: str, limit: int | None = None) -> list[CuratedDoc]:
        limit = limit or self._config.docs.limit
        kw = self._config.keywords
        terms = task_keywords(task, kw.stop_words, kw.min_task_length)
        if not terms:
            return []
        query = fts_or_query(terms, self._config.docs.query_terms)
        try:
            docs = self._repo.search_docs_fts(query, limit)
        except QuerySyntaxError as exc:
            logger.debug("Docs FTS query %r rejected (%s); substring fallback", query, exc)
            docs = []
        return docs or self._repo.search_docs_substring(terms, limit)


def format_docs(docs: list[CuratedDoc]) -> str:
    """Markdown blurb for injection into an agent's context ('' when empty)."""
    if not docs:
        return ""
    out = ["## Relevant Tools for This Task", ""]
    for doc in docs:
        out.append(f"### {doc.tool_name} ({doc.tool_type})")
        out.append(doc.description)
        out.append("")
        if doc.operations:
            out.append("Key operations:")
            out.extend(f"- `{op}`" for op in doc.operations[:_MAX_OPERATIONS])
            extra = len(doc.operations) - _MAX_OPERATIONS
            if extra > 0:
                out.append(f"- ... and {extra} more")
            out.append("")
        if doc.examples:
            first = doc.examples[0]
            text = (first.get("correct") or next(iter(first.values()), "")) if isinstance(first, dict) else first
            out.extend(["Example:", "```", str(text), "```", ""])
    return "\n".join(out)
