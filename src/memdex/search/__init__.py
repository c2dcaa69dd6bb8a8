"""memdex search: hybrid chunk ranking, session expansion, retrieval facade."""

from memdex.search.engine import ChunkHit, HybridSearchEngine, MatchSource
from memdex.search.retrieval import RetrievalMode, RetrievalRequest, Retriever
from memdex.search.sessions import ResultKind, RetrievalResult, Session, SessionExpander

__all__ = [
    "ChunkHit",
    "HybridSearchEngine",
    "MatchSource",
    "RetrievalMode",
    "RetrievalRequest",
    "Retriever",
    "ResultKind",
    "RetrievalResult",
    "Session",
    "SessionExpander",
]
