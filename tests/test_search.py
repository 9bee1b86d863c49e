"""Tests for the semantic search engine and its lexical degradation."""

from __future__ import annotations

import pytest

from kb_retrieval.cache import EmbeddingCache, query_key
from kb_retrieval.config import SearchSettings
from kb_retrieval.embeddings import FailureKind
from kb_retrieval.indexing import IngestionPipeline
from kb_retrieval.search import (
    CancellationToken,
    SemanticSearchEngine,
    VectorDimensionMismatch,
)
from kb_retrieval.storage import DuckDBDocumentStore, StoreError

from .conftest import FailingEmbedder, ScriptedEmbedder, keyword_vector


class _UnlistableStore:
    """Store whose listing fails while term search keeps working."""

    def __init__(self, inner: DuckDBDocumentStore) -> None:
        self.inner = inner

    def list_documents(self, knowledge_base_id: str):
        raise StoreError("listing unavailable")

    def __getattr__(self, name: str):
        return getattr(self.inner, name)


@pytest.mark.asyncio
async def test_semantic_search_ranks_cat_documents_first(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    engine = SemanticSearchEngine(store, ScriptedEmbedder())

    outcome = await engine.run(pets_kb, "cat behavior")

    assert outcome.strategy == "semantic"
    assert outcome.cancelled is False
    names = [hit.document.name for hit in outcome.hits]
    assert set(names[:2]) == {"cats.md", "purring.md"}
    assert names[2:] == ["dogs.md"]
    assert outcome.hits[0].score == pytest.approx(1.0)
    assert outcome.hits[2].score == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_search_returns_plain_documents(store: DuckDBDocumentStore, pets_kb: str) -> None:
    engine = SemanticSearchEngine(store, ScriptedEmbedder())

    documents = await engine.search(pets_kb, "dog")

    assert documents[0].name == "dogs.md"
    assert len(documents) <= 5


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", list(FailureKind))
async def test_provider_failure_falls_back_to_lexical(
    store: DuckDBDocumentStore, pets_kb: str, kind: FailureKind
) -> None:
    embedder = FailingEmbedder(kind)
    engine = SemanticSearchEngine(store, embedder)

    outcome = await engine.run(pets_kb, "cat")

    assert outcome.strategy == "lexical"
    assert [doc.name for doc in outcome.documents] == ["cats.md", "purring.md"]
    assert all(hit.score is None for hit in outcome.hits)
    assert embedder.calls == 1


@pytest.mark.asyncio
async def test_missing_provider_uses_lexical_search(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    engine = SemanticSearchEngine(store)

    outcome = await engine.run(pets_kb, "dogs")

    assert outcome.strategy == "lexical"
    assert [doc.name for doc in outcome.documents] == ["dogs.md"]


@pytest.mark.asyncio
async def test_semantic_disabled_never_calls_provider(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    embedder = ScriptedEmbedder()
    engine = SemanticSearchEngine(store, embedder)

    documents = await engine.search(pets_kb, "purr (happy)", semantic=False)

    assert [doc.name for doc in documents] == ["purring.md"]
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_blank_query_skips_embedding(store: DuckDBDocumentStore, pets_kb: str) -> None:
    embedder = ScriptedEmbedder()
    engine = SemanticSearchEngine(store, embedder)

    outcome = await engine.run(pets_kb, "   ")

    assert outcome.strategy == "lexical"
    assert len(outcome.hits) == 3
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_empty_knowledge_base_returns_nothing(store: DuckDBDocumentStore) -> None:
    engine = SemanticSearchEngine(store, ScriptedEmbedder())

    outcome = await engine.run("empty", "anything at all")

    assert outcome.strategy == "semantic"
    assert outcome.hits == []


@pytest.mark.asyncio
async def test_low_scores_still_return_top_documents(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    def vector_for(text: str) -> list[float]:
        return [1.0, 0.0] if text == "zebra" else [0.1, 1.0]

    engine = SemanticSearchEngine(store, ScriptedEmbedder(vector_for))

    outcome = await engine.run(pets_kb, "zebra")

    assert outcome.strategy == "semantic"
    assert [hit.document.name for hit in outcome.hits] == ["cats.md", "dogs.md", "purring.md"]
    assert all(hit.score is not None and hit.score < 0.4 for hit in outcome.hits)


@pytest.mark.asyncio
async def test_results_are_capped_at_limit(store: DuckDBDocumentStore) -> None:
    pipeline = IngestionPipeline(store)
    for i in range(8):
        pipeline.ingest_text("cats", f"cat_{i}.md", f"Cat fact number {i}.")
    engine = SemanticSearchEngine(store, ScriptedEmbedder())

    outcome = await engine.run("cats", "cat")

    assert len(outcome.hits) == 5
    assert [hit.document.name for hit in outcome.hits] == [f"cat_{i}.md" for i in range(5)]


@pytest.mark.asyncio
async def test_repeat_query_is_served_from_cache(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    embedder = ScriptedEmbedder()
    engine = SemanticSearchEngine(store, embedder)

    first = await engine.search(pets_kb, "cat behavior")
    calls_after_first = len(embedder.calls)
    second = await engine.search(pets_kb, "cat behavior")

    assert first == second
    assert calls_after_first == 4
    assert len(embedder.calls) == calls_after_first
    assert query_key("cat behavior") in engine.cache


@pytest.mark.asyncio
async def test_engines_sharing_a_cache_reuse_embeddings(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    cache = EmbeddingCache()
    await SemanticSearchEngine(store, ScriptedEmbedder(), cache=cache).search(pets_kb, "cat")
    second_embedder = ScriptedEmbedder()

    documents = await SemanticSearchEngine(store, second_embedder, cache=cache).search(
        pets_kb, "cat"
    )

    assert documents
    assert second_embedder.calls == []


@pytest.mark.asyncio
async def test_failed_chunk_embeddings_are_not_cached(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    def vector_for(text: str) -> list[float] | None:
        return None if text.startswith("Dogs") else keyword_vector(text)

    cache = EmbeddingCache()
    embedder = ScriptedEmbedder(vector_for)
    engine = SemanticSearchEngine(store, embedder, cache=cache)
    outcome = await engine.run(pets_kb, "cat")

    assert [hit.document.name for hit in outcome.hits] == ["cats.md", "purring.md"]
    assert "Dogs bark loudly." in embedder.calls
    assert len(cache) == 3


@pytest.mark.asyncio
async def test_listing_failure_falls_back_to_lexical(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    engine = SemanticSearchEngine(_UnlistableStore(store), ScriptedEmbedder())

    outcome = await engine.run(pets_kb, "purr")

    assert outcome.strategy == "lexical"
    assert [doc.name for doc in outcome.documents] == ["purring.md"]


@pytest.mark.asyncio
async def test_zero_timeout_cancels_before_query_embedding(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    embedder = ScriptedEmbedder()
    engine = SemanticSearchEngine(store, embedder)

    outcome = await engine.run(pets_kb, "cat", timeout=0)

    assert outcome.strategy == "lexical"
    assert outcome.cancelled is True
    assert embedder.calls == []
    assert [doc.name for doc in outcome.documents] == ["cats.md", "purring.md"]


@pytest.mark.asyncio
async def test_slow_query_embedding_times_out_to_lexical(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    engine = SemanticSearchEngine(store, ScriptedEmbedder(delay=1.0))

    outcome = await engine.run(pets_kb, "dog", timeout=0.05)

    assert outcome.strategy == "lexical"
    assert outcome.cancelled is True
    assert [doc.name for doc in outcome.documents] == ["dogs.md"]


@pytest.mark.asyncio
async def test_cancellation_mid_search_keeps_completed_scores(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    token = CancellationToken()

    def vector_for(text: str) -> list[float]:
        if text.startswith("Dogs"):
            token.cancel()
        return keyword_vector(text)

    settings = SearchSettings(batch_size=2)
    engine = SemanticSearchEngine(store, ScriptedEmbedder(vector_for), settings=settings)

    outcome = await engine.run(pets_kb, "cat", token=token)

    assert outcome.strategy == "semantic"
    assert outcome.cancelled is True
    assert [hit.document.name for hit in outcome.hits] == ["cats.md", "dogs.md"]


@pytest.mark.asyncio
async def test_dimension_mismatch_is_raised(store: DuckDBDocumentStore, pets_kb: str) -> None:
    def vector_for(text: str) -> list[float]:
        return [1.0, 0.0] if text == "cat" else keyword_vector(text)

    engine = SemanticSearchEngine(store, ScriptedEmbedder(vector_for))

    with pytest.raises(VectorDimensionMismatch):
        await engine.search(pets_kb, "cat")


@pytest.mark.asyncio
async def test_cancellation_before_scoring_falls_back_to_lexical(
    store: DuckDBDocumentStore, pets_kb: str
) -> None:
    token = CancellationToken()

    def vector_for(text: str) -> list[float]:
        if text == "purr":
            token.cancel()
        return keyword_vector(text)

    embedder = ScriptedEmbedder(vector_for)
    engine = SemanticSearchEngine(store, embedder)

    outcome = await engine.run(pets_kb, "purr", token=token)

    assert outcome.strategy == "lexical"
    assert outcome.cancelled is True
    assert [doc.name for doc in outcome.documents] == ["purring.md"]
    assert embedder.calls == ["purr"]
