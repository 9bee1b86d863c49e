"""
Per-document scoring against a query embedding.
"""

from __future__ import annotations

import logging

from ..cache import CachingEmbedder, chunk_key
from ..config import SearchSettings
from ..embeddings import EmbeddingUnavailable
from ..indexing.chunker import TextSegmenter
from ..storage import Document
from .cancellation import CancellationToken
from .ranker import ScoredFile
from .similarity import cosine_similarity


logger = logging.getLogger(__name__)


class FileScorer:
    """Best cosine similarity over the leading chunks of a document."""

    def __init__(
        self,
        embedder: CachingEmbedder,
        settings: SearchSettings | None = None,
        segmenter: TextSegmenter | None = None,
    ) -> None:
        self.embedder = embedder
        self.settings = settings or SearchSettings()
        self.segmenter = segmenter or TextSegmenter(
            chunk_size=self.settings.chunk_size,
            overlap=self.settings.chunk_overlap,
        )

    async def score(
        self,
        document: Document,
        query_vector: list[float],
        *,
        token: CancellationToken | None = None,
    ) -> ScoredFile:
        if not document.content:
            return ScoredFile(document=document, score=0.0)

        chunks = self.segmenter.split(document.content)
        chunks = chunks[: self.settings.max_chunks_per_document]

        best_score = 0.0
        processed = 0
        for chunk in chunks:
            if token is not None and token.cancelled:
                logger.debug("Stopped scoring %s after %d chunks: cancelled", document.id, processed)
                break

            key = chunk_key(document.id, chunk, self.settings.chunk_key_prefix_chars)
            result = await self.embedder.embed(key, chunk)
            if isinstance(result, EmbeddingUnavailable):
                logger.debug(
                    "Skipping chunk of %s: embedding unavailable (%s)",
                    document.id,
                    result.kind.value,
                )
                continue

            best_score = max(best_score, cosine_similarity(query_vector, result.vector))
            processed += 1
            if best_score > self.settings.early_exit_score:
                break

        logger.debug(
            "Processed %d chunks for document %s, best score: %.2f",
            processed,
            document.name or document.id,
            best_score,
        )
        return ScoredFile(document=document, score=best_score, chunks_scored=processed)
