"""
Bounded-concurrency scoring across a knowledge base.
"""

from __future__ import annotations

import asyncio
import logging

from ..storage import Document
from .cancellation import CancellationToken
from .ranker import ScoredFile
from .scorer import FileScorer


logger = logging.getLogger(__name__)


class BatchSearchOrchestrator:
    """
    Score documents in sequential batches of ``batch_size``.

    Documents inside a batch are scored concurrently, which caps the number
    of outstanding embedding calls at ``batch_size``. Results come back in
    input order. Once the token is cancelled no further batch starts; the
    remaining documents are left out of the result.
    """

    def __init__(self, scorer: FileScorer, *, batch_size: int = 3) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.scorer = scorer
        self.batch_size = batch_size

    async def search_all(
        self,
        documents: list[Document],
        query_vector: list[float],
        *,
        token: CancellationToken | None = None,
    ) -> list[ScoredFile]:
        scored: list[ScoredFile] = []
        for start in range(0, len(documents), self.batch_size):
            if token is not None and token.cancelled:
                logger.warning(
                    "Search cancelled; %d of %d documents left unscored",
                    len(documents) - start,
                    len(documents),
                )
                break
            batch = documents[start : start + self.batch_size]
            results = await asyncio.gather(
                *(self.scorer.score(document, query_vector, token=token) for document in batch)
            )
            scored.extend(results)
        return scored
