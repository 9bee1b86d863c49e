"""
Keyword retrieval used when semantic search is unavailable.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, TypeAlias

from ..storage import Document, DocumentStore, MalformedQueryError, StoreError


logger = logging.getLogger(__name__)

LexicalStrategy: TypeAlias = Literal["lexical", "substring"]


def build_prefix_query(query: str) -> str:
    """Turn ``cat behavior`` into ``cat:* & behavior:*``."""
    return " & ".join(f"{term}:*" for term in query.split())


def substring_matches(documents: list[Document], query: str) -> list[Document]:
    """Documents containing any query term, case-insensitively."""
    terms = [term for term in query.lower().split() if term]
    if not terms:
        return list(documents)
    return [
        document
        for document in documents
        if any(term in document.content.lower() for term in terms)
    ]


@dataclass(frozen=True)
class LexicalResult:
    documents: list[Document]
    strategy: LexicalStrategy


class LexicalSearchFallback:
    """
    Prefix-term search against the store's text index.

    If the index rejects the generated query as malformed, every document in
    the knowledge base is fetched and filtered client-side by substring. Store
    failures end the search with an empty result.
    """

    def __init__(self, store: DocumentStore, *, limit: int = 5) -> None:
        self.store = store
        self.limit = limit

    async def search(self, knowledge_base_id: str, query: str) -> LexicalResult:
        term_query = build_prefix_query(query)
        if not term_query:
            return await self._first_documents(knowledge_base_id)

        try:
            documents = await asyncio.to_thread(
                self.store.text_search,
                knowledge_base_id,
                term_query,
                limit=self.limit,
            )
        except MalformedQueryError as exc:
            logger.warning("Term query %r rejected (%s); using substring match", term_query, exc)
            return await self._substring_search(knowledge_base_id, query)
        except StoreError as exc:
            logger.warning("Term search failed for knowledge base %s: %s", knowledge_base_id, exc)
            return LexicalResult(documents=[], strategy="lexical")
        return LexicalResult(documents=documents[: self.limit], strategy="lexical")

    async def _first_documents(self, knowledge_base_id: str) -> LexicalResult:
        try:
            documents = await asyncio.to_thread(self.store.list_documents, knowledge_base_id)
        except StoreError as exc:
            logger.warning("Listing knowledge base %s failed: %s", knowledge_base_id, exc)
            documents = []
        return LexicalResult(documents=documents[: self.limit], strategy="lexical")

    async def _substring_search(self, knowledge_base_id: str, query: str) -> LexicalResult:
        try:
            documents = await asyncio.to_thread(self.store.list_all, knowledge_base_id)
        except StoreError as exc:
            logger.warning("Fetching knowledge base %s failed: %s", knowledge_base_id, exc)
            return LexicalResult(documents=[], strategy="substring")
        matches = substring_matches(documents, query)
        return LexicalResult(documents=matches[: self.limit], strategy="substring")
