"""
Storage interfaces and data models for knowledge-base documents.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class StoreError(RuntimeError):
    """The document store could not complete a request."""


class MalformedQueryError(StoreError):
    """The full-text index rejected a term query as syntactically invalid."""


@dataclass(frozen=True)
class Document:
    """A stored document. Content is replaced wholesale on edit."""

    id: str
    knowledge_base_id: str
    content: str
    name: str = ""
    type: str = "text"

    @property
    def content_length(self) -> int:
        return len(self.content)


class DocumentStore(Protocol):
    """Protocol for the document operations retrieval and ingestion rely on."""

    def list_documents(self, knowledge_base_id: str) -> list[Document]:
        """List every document in a knowledge base, in stored order."""

    def text_search(
        self,
        knowledge_base_id: str,
        term_query: str,
        *,
        limit: int | None = None,
    ) -> list[Document]:
        """Run a boolean prefix-term query (``term:* & term:*``)."""

    def list_all(self, knowledge_base_id: str) -> list[Document]:
        """Fetch every document for client-side filtering."""

    def upsert_document(self, document: Document) -> None:
        """Insert a document or replace its content."""

    def delete_document(self, *, doc_id: str) -> bool:
        """Delete a document. Return True if it existed."""

    def get_document(self, *, doc_id: str) -> Document | None:
        """Get a document by id."""

    def list_knowledge_bases(self) -> list[str]:
        """List knowledge-base ids that hold at least one document."""

    def count_documents(self, knowledge_base_id: str) -> int:
        """Count documents in a knowledge base."""
