"""
KB Retrieval - semantic document retrieval for knowledge bases.

Finds the handful of stored documents most relevant to a natural-language
query. Documents are chunked, chunks are embedded with Google GenAI and
scored by cosine similarity against the query, and a keyword search takes
over whenever embeddings are unavailable.

Example usage:
    >>> from kb_retrieval import DuckDBDocumentStore, EmbeddingProvider, SemanticSearchEngine
    >>> engine = SemanticSearchEngine(DuckDBDocumentStore("kb.duckdb"), EmbeddingProvider())
    >>> documents = await engine.search("biology-notes", "how do cells divide?")
"""

from .cache import CachingEmbedder, EmbeddingCache
from .config import SearchSettings, resolve_db_path
from .embeddings import (
    Embedder,
    EmbeddingProvider,
    EmbeddingResult,
    EmbeddingSuccess,
    EmbeddingUnavailable,
    FailureKind,
)
from .indexing import IngestionPipeline, TextSegmenter, split_text
from .search import (
    CancellationToken,
    RetrievalRanker,
    SearchHit,
    SearchOutcome,
    SemanticSearchEngine,
    VectorDimensionMismatch,
    cosine_similarity,
)
from .storage import Document, DocumentStore, DuckDBDocumentStore

__all__ = [
    # Embeddings
    "Embedder",
    "EmbeddingProvider",
    "EmbeddingResult",
    "EmbeddingSuccess",
    "EmbeddingUnavailable",
    "FailureKind",
    "CachingEmbedder",
    "EmbeddingCache",
    # Configuration
    "SearchSettings",
    "resolve_db_path",
    # Indexing
    "IngestionPipeline",
    "TextSegmenter",
    "split_text",
    # Search
    "CancellationToken",
    "RetrievalRanker",
    "SearchHit",
    "SearchOutcome",
    "SemanticSearchEngine",
    "VectorDimensionMismatch",
    "cosine_similarity",
    # Storage
    "Document",
    "DocumentStore",
    "DuckDBDocumentStore",
]
