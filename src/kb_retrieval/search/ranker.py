"""
Ranking policy for scored documents.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..storage import Document


@dataclass(frozen=True)
class ScoredFile:
    """A document paired with its best chunk similarity for one query."""

    document: Document
    score: float
    chunks_scored: int = 0


def order_by_score(scored_files: list[ScoredFile]) -> list[ScoredFile]:
    """Sort by score descending; ties keep their input order."""
    indexed = sorted(
        enumerate(scored_files),
        key=lambda item: (-item[1].score, item[0]),
    )
    return [scored for _, scored in indexed]


class RetrievalRanker:
    """
    Two-tier selection over scored documents.

    Documents scoring strictly above ``threshold`` win when there are any;
    otherwise the best ``limit`` documents are returned regardless of score,
    so a non-empty corpus never yields an empty result.
    """

    def __init__(self, *, threshold: float = 0.4, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.threshold = threshold
        self.limit = limit

    def rank(self, scored_files: list[ScoredFile]) -> list[ScoredFile]:
        ordered = order_by_score(scored_files)
        top_results = ordered[: self.limit]
        threshold_results = [
            scored for scored in ordered if scored.score > self.threshold
        ][: self.limit]
        return threshold_results if threshold_results else top_results
