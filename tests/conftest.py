from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from kb_retrieval.embeddings import (
    EmbeddingResult,
    EmbeddingSuccess,
    EmbeddingUnavailable,
    FailureKind,
)
from kb_retrieval.indexing import IngestionPipeline
from kb_retrieval.storage import DuckDBDocumentStore


PET_DOCUMENTS = {
    "cats.md": "Cats are mammals.",
    "dogs.md": "Dogs bark loudly.",
    "purring.md": "Cats purr when happy.",
}


def keyword_vector(text: str) -> list[float]:
    """Embed text as (cat mentions, dog mentions, bias)."""
    lowered = text.lower()
    return [float(lowered.count("cat")), float(lowered.count("dog")), 1.0]


class ScriptedEmbedder:
    """
    Embedder stub driven by a function of the input text.

    ``vector_for`` returning None produces a transient failure. Records every
    dispatched text and the peak number of concurrent calls.
    """

    def __init__(
        self,
        vector_for: Callable[[str], list[float] | None] = keyword_vector,
        *,
        delay: float = 0.0,
    ) -> None:
        self.vector_for = vector_for
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            vector = self.vector_for(text)
        finally:
            self.in_flight -= 1
        if vector is None:
            return EmbeddingUnavailable(kind=FailureKind.TRANSIENT, detail="scripted failure")
        return EmbeddingSuccess(vector=vector)


class FailingEmbedder:
    """Embedder stub that is always unavailable."""

    def __init__(self, kind: FailureKind = FailureKind.TRANSIENT) -> None:
        self.kind = kind
        self.calls = 0

    async def embed(self, text: str) -> EmbeddingResult:
        self.calls += 1
        return EmbeddingUnavailable(kind=self.kind, detail="provider down")


@pytest.fixture()
def store(tmp_path: Path):
    document_store = DuckDBDocumentStore(str(tmp_path / "store.duckdb"))
    yield document_store
    document_store.close()


@pytest.fixture()
def pets_kb(store: DuckDBDocumentStore) -> str:
    pipeline = IngestionPipeline(store)
    for name, content in PET_DOCUMENTS.items():
        pipeline.ingest_text("pets", name, content)
    return "pets"
