"""Storage backends for knowledge-base documents."""

from .base import Document, DocumentStore, MalformedQueryError, StoreError
from .duckdb import DuckDBDocumentStore, parse_prefix_query

__all__ = [
    "Document",
    "DocumentStore",
    "MalformedQueryError",
    "StoreError",
    "DuckDBDocumentStore",
    "parse_prefix_query",
]
