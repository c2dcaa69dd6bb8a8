"""memdex curated documentation store."""

from memdex.docs.loader import DocsFormatError, generate_documentation, load_docs
from memdex.docs.retriever import DocRetriever, format_docs

__all__ = ["DocRetriever", "DocsFormatError", "format_docs", "generate_documentation", "load_docs"]
