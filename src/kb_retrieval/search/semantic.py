"""
Knowledge-base search: semantic retrieval with lexical degradation.

A search embeds the query, scores every document in bounded batches and
ranks the scores. When the query cannot be embedded (no provider, provider
failure, cancellation before the embedding arrives) or the document listing
fails, the same call answers from the lexical fallback instead. Ordinary
operating failures never escape ``search()``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Literal, TypeAlias

from ..cache import CachingEmbedder, EmbeddingCache, query_key
from ..config import SearchSettings
from ..embeddings import (
    Embedder,
    EmbeddingResult,
    EmbeddingUnavailable,
    FailureKind,
)
from ..storage import Document, DocumentStore, StoreError
from .batch import BatchSearchOrchestrator
from .cancellation import CancellationToken
from .lexical import LexicalSearchFallback
from .ranker import RetrievalRanker
from .scorer import FileScorer


logger = logging.getLogger(__name__)

SearchStrategy: TypeAlias = Literal["semantic", "lexical", "substring"]


@dataclass(frozen=True)
class SearchHit:
    """A retrieved document; ``score`` is set for semantic hits only."""

    document: Document
    score: float | None = None


@dataclass(frozen=True)
class SearchOutcome:
    knowledge_base_id: str
    query: str
    strategy: SearchStrategy
    hits: list[SearchHit]
    cancelled: bool = False

    @property
    def documents(self) -> list[Document]:
        return [hit.document for hit in self.hits]


class SemanticSearchEngine:
    """Embed a query and rank knowledge-base documents by chunk similarity."""

    def __init__(
        self,
        store: DocumentStore,
        embedding_provider: Embedder | None = None,
        *,
        cache: EmbeddingCache | None = None,
        settings: SearchSettings | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or SearchSettings()
        self.cache = cache if cache is not None else EmbeddingCache(self.settings.cache_max_entries)
        self.embedder: CachingEmbedder | None = None
        self.orchestrator: BatchSearchOrchestrator | None = None
        if embedding_provider is not None:
            self.embedder = CachingEmbedder(embedding_provider, self.cache)
            self.orchestrator = BatchSearchOrchestrator(
                FileScorer(self.embedder, self.settings),
                batch_size=self.settings.batch_size,
            )
        self.ranker = RetrievalRanker(
            threshold=self.settings.relevance_threshold,
            limit=self.settings.result_limit,
        )
        self.lexical = LexicalSearchFallback(store, limit=self.settings.result_limit)

    async def search(
        self,
        knowledge_base_id: str,
        query: str,
        *,
        semantic: bool = True,
        timeout: float | None = None,
    ) -> list[Document]:
        """Return at most ``result_limit`` documents, most relevant first."""
        outcome = await self.run(
            knowledge_base_id,
            query,
            semantic=semantic,
            timeout=timeout,
        )
        return outcome.documents

    async def run(
        self,
        knowledge_base_id: str,
        query: str,
        *,
        semantic: bool = True,
        timeout: float | None = None,
        token: CancellationToken | None = None,
    ) -> SearchOutcome:
        """Like ``search`` but reports the strategy used and per-hit scores."""
        token = token or CancellationToken(timeout)
        started = time.perf_counter()
        embedder, orchestrator = self.embedder, self.orchestrator
        if semantic and embedder is not None and orchestrator is not None and query.strip():
            outcome = await self._semantic_search(
                knowledge_base_id,
                query,
                token,
                embedder=embedder,
                orchestrator=orchestrator,
            )
        else:
            outcome = await self._lexical_search(knowledge_base_id, query, cancelled=False)
        logger.info(
            "Search in %s answered by %s with %d hits in %.1f ms",
            knowledge_base_id,
            outcome.strategy,
            len(outcome.hits),
            (time.perf_counter() - started) * 1000,
        )
        return outcome

    async def _semantic_search(
        self,
        knowledge_base_id: str,
        query: str,
        token: CancellationToken,
        *,
        embedder: CachingEmbedder,
        orchestrator: BatchSearchOrchestrator,
    ) -> SearchOutcome:
        embedded = await self._embed_query(query, token, embedder)
        if isinstance(embedded, EmbeddingUnavailable):
            logger.warning(
                "Query embedding unavailable (%s: %s); falling back to lexical search",
                embedded.kind.value,
                embedded.detail,
            )
            return await self._lexical_search(knowledge_base_id, query, cancelled=token.cancelled)

        try:
            documents = await asyncio.to_thread(self.store.list_documents, knowledge_base_id)
        except StoreError as exc:
            logger.warning("Listing knowledge base %s failed (%s); falling back", knowledge_base_id, exc)
            return await self._lexical_search(knowledge_base_id, query, cancelled=token.cancelled)

        if not documents:
            return SearchOutcome(knowledge_base_id, query, "semantic", [])

        scored = await orchestrator.search_all(documents, embedded.vector, token=token)
        if not scored and token.cancelled:
            logger.warning(
                "Search cancelled before any document of %s was scored; falling back",
                knowledge_base_id,
            )
            return await self._lexical_search(knowledge_base_id, query, cancelled=True)

        ranked = self.ranker.rank(scored)
        return SearchOutcome(
            knowledge_base_id=knowledge_base_id,
            query=query,
            strategy="semantic",
            hits=[SearchHit(document=item.document, score=item.score) for item in ranked],
            cancelled=token.cancelled,
        )

    async def _embed_query(
        self,
        query: str,
        token: CancellationToken,
        embedder: CachingEmbedder,
    ) -> EmbeddingResult:
        if token.cancelled:
            return EmbeddingUnavailable(FailureKind.TRANSIENT, "search cancelled")
        pending = embedder.embed(query_key(query), query)
        remaining = token.remaining()
        if remaining is None:
            return await pending
        try:
            return await asyncio.wait_for(pending, timeout=remaining)
        except asyncio.TimeoutError:
            return EmbeddingUnavailable(FailureKind.TRANSIENT, "query embedding timed out")

    async def _lexical_search(
        self,
        knowledge_base_id: str,
        query: str,
        *,
        cancelled: bool,
    ) -> SearchOutcome:
        result = await self.lexical.search(knowledge_base_id, query)
        return SearchOutcome(
            knowledge_base_id=knowledge_base_id,
            query=query,
            strategy=result.strategy,
            hits=[SearchHit(document=document) for document in result.documents],
            cancelled=cancelled,
        )
