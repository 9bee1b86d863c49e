"""
Ingestion of text into knowledge bases.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..storage import Document, DocumentStore, DuckDBDocumentStore


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".txt", ".md"})


class DocumentValidationError(ValueError):
    """Document fields failed validation at ingestion."""


@dataclass(frozen=True)
class IngestionResult:
    """Summary output for an ingestion run."""

    knowledge_base_id: str
    ingested_files: int
    skipped_files: int
    total_documents: int


def build_document(
    *,
    knowledge_base_id: str,
    name: str,
    content: str,
    type: str = "text",
) -> Document:
    """Validate raw fields and return a ``Document`` with a stable id."""
    if not isinstance(knowledge_base_id, str) or not knowledge_base_id.strip():
        raise DocumentValidationError("knowledge_base_id must be a non-empty string")
    if not isinstance(name, str) or not name.strip():
        raise DocumentValidationError("name must be a non-empty string")
    if not isinstance(content, str):
        raise DocumentValidationError("content must be a string")
    if not isinstance(type, str) or not type.strip():
        raise DocumentValidationError("type must be a non-empty string")

    kb_id = knowledge_base_id.strip()
    doc_name = name.strip()
    return Document(
        id=DuckDBDocumentStore.make_document_id(kb_id, doc_name),
        knowledge_base_id=kb_id,
        content=content,
        name=doc_name,
        type=type.strip().lower(),
    )


class IngestionPipeline:
    """Validate documents and write them to a document store."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def ingest_text(
        self,
        knowledge_base_id: str,
        name: str,
        content: str,
        *,
        type: str = "text",
    ) -> Document:
        document = build_document(
            knowledge_base_id=knowledge_base_id,
            name=name,
            content=content,
            type=type,
        )
        self.store.upsert_document(document)
        logger.debug(
            "Ingested %s into %s (%d chars)",
            document.name,
            document.knowledge_base_id,
            document.content_length,
        )
        return document

    def ingest_folder(self, folder: str, knowledge_base_id: str) -> IngestionResult:
        root = str(Path(folder).resolve())
        if not os.path.exists(root) or not os.path.isdir(root):
            raise ValueError(f"No such directory: {root}")

        ingested = 0
        skipped = 0
        for file_path in self._iter_supported_files(root):
            relative_path = os.path.relpath(file_path, root)
            try:
                content = Path(file_path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping %s: %s", relative_path, exc)
                skipped += 1
                continue
            file_type = Path(file_path).suffix.lstrip(".").lower() or "text"
            self.ingest_text(knowledge_base_id, relative_path, content, type=file_type)
            ingested += 1

        return IngestionResult(
            knowledge_base_id=knowledge_base_id.strip(),
            ingested_files=ingested,
            skipped_files=skipped,
            total_documents=self.store.count_documents(knowledge_base_id.strip()),
        )

    @staticmethod
    def _iter_supported_files(root: str) -> list[str]:
        files: list[str] = []
        for current_root, _, filenames in os.walk(root):
            for filename in filenames:
                ext = Path(filename).suffix.lower()
                if ext in SUPPORTED_EXTENSIONS:
                    files.append(str(Path(current_root) / filename))
        files.sort()
        return files
