"""Search components for knowledge-base retrieval."""

from .batch import BatchSearchOrchestrator
from .cancellation import CancellationToken
from .lexical import (
    LexicalResult,
    LexicalSearchFallback,
    build_prefix_query,
    substring_matches,
)
from .ranker import RetrievalRanker, ScoredFile, order_by_score
from .scorer import FileScorer
from .semantic import SearchHit, SearchOutcome, SearchStrategy, SemanticSearchEngine
from .similarity import VectorDimensionMismatch, cosine_similarity

__all__ = [
    "BatchSearchOrchestrator",
    "CancellationToken",
    "LexicalResult",
    "LexicalSearchFallback",
    "build_prefix_query",
    "substring_matches",
    "RetrievalRanker",
    "ScoredFile",
    "order_by_score",
    "FileScorer",
    "SearchHit",
    "SearchOutcome",
    "SearchStrategy",
    "SemanticSearchEngine",
    "VectorDimensionMismatch",
    "cosine_similarity",
]
