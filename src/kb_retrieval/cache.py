"""
Process-wide memoization of embedding vectors.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

from .embeddings import Embedder, EmbeddingResult, EmbeddingSuccess


logger = logging.getLogger(__name__)

_DEFAULT_MAX_ENTRIES = 10_000


def query_key(query: str) -> str:
    return f"query:{query}"


def chunk_key(document_id: str, chunk: str, prefix_chars: int = 50) -> str:
    return f"chunk:{document_id}:{chunk[:prefix_chars]}"


class EmbeddingCache:
    """
    Thread-safe LRU map of cache key -> embedding vector.

    Holds at most ``max_entries`` vectors; the least recently used entry is
    evicted first. Writers for the same key are expected to store identical
    vectors, so the last write simply wins.
    """

    def __init__(self, max_entries: int = _DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, list[float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> list[float] | None:
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return vector

    def put(self, key: str, vector: list[float]) -> None:
        with self._lock:
            self._entries[key] = vector
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted embedding cache entry %s", evicted[:80])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


class CachingEmbedder:
    """Consult the cache before dispatching to the embedder; store successes only."""

    def __init__(self, embedder: Embedder, cache: EmbeddingCache) -> None:
        self.embedder = embedder
        self.cache = cache

    async def embed(self, key: str, text: str) -> EmbeddingResult:
        cached = self.cache.get(key)
        if cached is not None:
            return EmbeddingSuccess(vector=cached)

        result = await self.embedder.embed(text)
        if isinstance(result, EmbeddingSuccess):
            self.cache.put(key, result.vector)
        return result
