"""
FastAPI server exposing knowledge-base ingestion and search.

Every engine built here shares one process-wide embedding cache, so repeated
queries and unchanged chunks are embedded once per process.
"""

import asyncio
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .cache import EmbeddingCache
from .config import SearchSettings, resolve_db_path
from .embeddings import EmbeddingProvider
from .indexing import DocumentValidationError, IngestionPipeline
from .search import SemanticSearchEngine
from .storage import DuckDBDocumentStore, StoreError

app = FastAPI(
    title="KB Retrieval",
    description="Semantic document retrieval for knowledge bases",
)
logger = logging.getLogger(__name__)

_embedding_cache: EmbeddingCache | None = None
_settings: SearchSettings | None = None


def get_settings() -> SearchSettings:
    global _settings
    if _settings is None:
        _settings = SearchSettings.from_env()
    return _settings


def get_embedding_cache() -> EmbeddingCache:
    global _embedding_cache
    if _embedding_cache is None:
        _embedding_cache = EmbeddingCache(get_settings().cache_max_entries)
    return _embedding_cache


def get_embedding_provider() -> EmbeddingProvider | None:
    try:
        return EmbeddingProvider(max_chars=get_settings().max_embedding_chars)
    except ValueError as exc:
        logger.warning("Semantic search disabled: %s", exc)
        return None


class DocumentRequest(BaseModel):
    """Request model for document ingestion."""

    knowledge_base_id: str
    name: str
    content: str
    type: str = "text"
    db_path: str | None = None


class SearchRequest(BaseModel):
    """Request model for search queries."""

    knowledge_base_id: str
    query: str
    semantic: bool = True
    timeout: float | None = Field(default=None, ge=0)
    db_path: str | None = None


@app.post("/api/documents")
async def add_document(request: DocumentRequest):
    """Add a document to a knowledge base, replacing one with the same name."""
    try:
        store = DuckDBDocumentStore(resolve_db_path(request.db_path))
        try:
            document = await asyncio.to_thread(
                IngestionPipeline(store).ingest_text,
                request.knowledge_base_id,
                request.name,
                request.content,
                type=request.type,
            )
        finally:
            store.close()
        return {
            "id": document.id,
            "knowledge_base_id": document.knowledge_base_id,
            "name": document.name,
            "type": document.type,
            "content_length": document.content_length,
        }
    except DocumentValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except StoreError as exc:
        logger.error("Storing document failed: %s", exc)
        return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/api/knowledge-bases/{knowledge_base_id}/documents")
async def list_documents(knowledge_base_id: str, db_path: str | None = None):
    """List documents stored in a knowledge base."""
    try:
        store = DuckDBDocumentStore(resolve_db_path(db_path))
        try:
            docs = await asyncio.to_thread(store.list_documents, knowledge_base_id)
        finally:
            store.close()
    except StoreError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "knowledge_base_id": knowledge_base_id,
        "documents": [
            {
                "id": doc.id,
                "name": doc.name,
                "type": doc.type,
                "content_length": doc.content_length,
            }
            for doc in docs
        ],
    }


@app.get("/api/knowledge-bases")
async def list_knowledge_bases(db_path: str | None = None):
    """List knowledge bases with their document counts."""

    def _counts(store: DuckDBDocumentStore) -> dict[str, int]:
        return {kb_id: store.count_documents(kb_id) for kb_id in store.list_knowledge_bases()}

    try:
        store = DuckDBDocumentStore(resolve_db_path(db_path))
        try:
            counts = await asyncio.to_thread(_counts, store)
        finally:
            store.close()
    except StoreError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    return {
        "knowledge_bases": [
            {"knowledge_base_id": kb_id, "document_count": count}
            for kb_id, count in counts.items()
        ]
    }


@app.get("/api/documents/{doc_id}")
async def get_document(doc_id: str, db_path: str | None = None):
    """Fetch one stored document, content included."""
    try:
        store = DuckDBDocumentStore(resolve_db_path(db_path))
        try:
            document = await asyncio.to_thread(store.get_document, doc_id=doc_id)
        finally:
            store.close()
    except StoreError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    if document is None:
        return JSONResponse({"error": f"Document not found: {doc_id}"}, status_code=404)
    return {
        "id": document.id,
        "knowledge_base_id": document.knowledge_base_id,
        "name": document.name,
        "type": document.type,
        "content": document.content,
    }


@app.delete("/api/documents/{doc_id}")
async def delete_document(doc_id: str, db_path: str | None = None):
    """Remove a stored document."""
    try:
        store = DuckDBDocumentStore(resolve_db_path(db_path))
        try:
            removed = await asyncio.to_thread(store.delete_document, doc_id=doc_id)
        finally:
            store.close()
    except StoreError as exc:
        logger.error("Deleting document %s failed: %s", doc_id, exc)
        return JSONResponse({"error": str(exc)}, status_code=500)

    if not removed:
        return JSONResponse({"error": f"Document not found: {doc_id}"}, status_code=404)
    return {"id": doc_id, "deleted": True}


@app.post("/api/search")
async def search_documents(request: SearchRequest):
    """Search a knowledge base and return ranked documents."""
    try:
        store = DuckDBDocumentStore(resolve_db_path(request.db_path))
    except StoreError as exc:
        return JSONResponse({"error": str(exc)}, status_code=500)

    try:
        engine = SemanticSearchEngine(
            store,
            get_embedding_provider() if request.semantic else None,
            cache=get_embedding_cache(),
            settings=get_settings(),
        )
        outcome = await engine.run(
            request.knowledge_base_id,
            request.query,
            semantic=request.semantic,
            timeout=request.timeout,
        )
    finally:
        store.close()

    return {
        "knowledge_base_id": outcome.knowledge_base_id,
        "query": outcome.query,
        "strategy": outcome.strategy,
        "cancelled": outcome.cancelled,
        "hits": [
            {
                "id": hit.document.id,
                "name": hit.document.name,
                "type": hit.document.type,
                "content": hit.document.content,
                "score": hit.score,
            }
            for hit in outcome.hits
        ],
    }


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
