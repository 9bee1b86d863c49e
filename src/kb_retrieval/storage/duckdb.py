"""
DuckDB storage backend for knowledge-base documents.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any

import duckdb

from .base import Document, MalformedQueryError, StoreError


_PREFIX_SUFFIX = ":*"
_TERM_SEPARATOR = " & "
_RESERVED_TERM_CHARS = re.compile(r"""[&|!():*<>'"\\\s]""")

_DOCUMENT_COLUMNS = "id, knowledge_base_id, name, type, content"


def _stable_id(prefix: str, value: str) -> str:
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()
    return f"{prefix}_{digest}"


def parse_prefix_query(term_query: str) -> list[str]:
    """
    Parse ``term:* & term:*`` into lower-cased prefix terms.

    Raises MalformedQueryError for anything outside that grammar, including
    terms that carry query operators or quotes.
    """
    if not term_query.strip():
        raise MalformedQueryError("syntax error in term query: empty query")

    terms: list[str] = []
    for part in term_query.split(_TERM_SEPARATOR):
        token = part.strip()
        if not token.endswith(_PREFIX_SUFFIX):
            raise MalformedQueryError(f"syntax error in term query at {token!r}")
        term = token[: -len(_PREFIX_SUFFIX)]
        if not term or _RESERVED_TERM_CHARS.search(term):
            raise MalformedQueryError(f"syntax error in term query at {token!r}")
        terms.append(term.lower())
    return terms


def _word_prefix_pattern(term: str) -> str:
    return r"(?:^|\W)" + re.escape(term)


class DuckDBDocumentStore:
    """DuckDB-backed persistence and term search for knowledge-base documents."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StoreError(f"Cannot open store at {self.db_path}: {exc}") from exc
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._execute("CREATE SEQUENCE IF NOT EXISTS document_seq START 1")
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id VARCHAR PRIMARY KEY,
                knowledge_base_id VARCHAR NOT NULL,
                name VARCHAR NOT NULL,
                type VARCHAR NOT NULL DEFAULT 'text',
                content VARCHAR NOT NULL,
                content_length BIGINT NOT NULL,
                seq BIGINT NOT NULL DEFAULT nextval('document_seq'),
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

    def upsert_document(self, document: Document) -> None:
        self._execute(
            """
            INSERT INTO documents (id, knowledge_base_id, name, type, content, content_length)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                knowledge_base_id = excluded.knowledge_base_id,
                name = excluded.name,
                type = excluded.type,
                content = excluded.content,
                content_length = excluded.content_length,
                updated_at = now()
            """,
            [
                document.id,
                document.knowledge_base_id,
                document.name,
                document.type,
                document.content,
                document.content_length,
            ],
        )

    def delete_document(self, *, doc_id: str) -> bool:
        existed = self.get_document(doc_id=doc_id) is not None
        if existed:
            self._execute("DELETE FROM documents WHERE id = ?", [doc_id])
        return existed

    def get_document(self, *, doc_id: str) -> Document | None:
        rows = self._fetch(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ? LIMIT 1",
            [doc_id],
        )
        if not rows:
            return None
        return self._row_to_document(rows[0])

    def list_documents(self, knowledge_base_id: str) -> list[Document]:
        rows = self._fetch(
            f"""
            SELECT {_DOCUMENT_COLUMNS}
            FROM documents
            WHERE knowledge_base_id = ?
            ORDER BY seq
            """,
            [knowledge_base_id],
        )
        return [self._row_to_document(row) for row in rows]

    def list_all(self, knowledge_base_id: str) -> list[Document]:
        return self.list_documents(knowledge_base_id)

    def list_knowledge_bases(self) -> list[str]:
        rows = self._fetch(
            "SELECT DISTINCT knowledge_base_id FROM documents ORDER BY knowledge_base_id"
        )
        return [str(row[0]) for row in rows]

    def count_documents(self, knowledge_base_id: str) -> int:
        rows = self._fetch(
            "SELECT COUNT(*) FROM documents WHERE knowledge_base_id = ?",
            [knowledge_base_id],
        )
        return int(rows[0][0]) if rows else 0

    def text_search(
        self,
        knowledge_base_id: str,
        term_query: str,
        *,
        limit: int | None = None,
    ) -> list[Document]:
        terms = parse_prefix_query(term_query)

        sql = f"""
            SELECT {_DOCUMENT_COLUMNS}
            FROM documents
            WHERE knowledge_base_id = ?
        """
        params: list[Any] = [knowledge_base_id]
        for term in terms:
            sql += "\n  AND regexp_matches(lower(content), ?)"
            params.append(_word_prefix_pattern(term))
        sql += "\nORDER BY seq"
        if limit is not None:
            sql += "\nLIMIT ?"
            params.append(max(limit, 0))

        rows = self._fetch(sql, params)
        return [self._row_to_document(row) for row in rows]

    @staticmethod
    def make_document_id(knowledge_base_id: str, name: str) -> str:
        return _stable_id("doc", f"{knowledge_base_id}:{name}")

    def _execute(self, sql: str, params: list[Any] | None = None) -> None:
        try:
            if params:
                self._conn.execute(sql, params)
            else:
                self._conn.execute(sql)
        except duckdb.Error as exc:
            raise StoreError(str(exc)) from exc

    def _fetch(self, sql: str, params: list[Any] | None = None) -> list[tuple[Any, ...]]:
        try:
            cursor = self._conn.execute(sql, params) if params else self._conn.execute(sql)
            return cursor.fetchall()
        except duckdb.Error as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _row_to_document(row: tuple[Any, ...]) -> Document:
        return Document(
            id=str(row[0]),
            knowledge_base_id=str(row[1]),
            name=str(row[2]),
            type=str(row[3]),
            content=str(row[4]),
        )
