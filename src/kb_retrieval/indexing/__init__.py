"""Chunking and ingestion components."""

from .chunker import TextSegmenter, split_text
from .pipeline import (
    DocumentValidationError,
    IngestionPipeline,
    IngestionResult,
    build_document,
)

__all__ = [
    "TextSegmenter",
    "split_text",
    "DocumentValidationError",
    "IngestionPipeline",
    "IngestionResult",
    "build_document",
]
