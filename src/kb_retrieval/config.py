"""
Configuration helpers for retrieval policy and local store location.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path


DEFAULT_DB_PATH = "~/.kb_retrieval/store.duckdb"
ENV_DB_PATH = "KB_RETRIEVAL_DB_PATH"
ENV_PREFIX = "KB_RETRIEVAL_"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) KB_RETRIEVAL_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


@dataclass(frozen=True)
class SearchSettings:
    """Tunable constants for chunking, scoring, ranking and batching."""

    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_chunks_per_document: int = 10
    early_exit_score: float = 0.85
    relevance_threshold: float = 0.4
    result_limit: int = 5
    batch_size: int = 3
    max_embedding_chars: int = 8000
    chunk_key_prefix_chars: int = 50
    cache_max_entries: int = 10_000

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap must be >= 0")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        if self.max_chunks_per_document < 1:
            raise ValueError("max_chunks_per_document must be >= 1")
        if self.result_limit < 1:
            raise ValueError("result_limit must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_embedding_chars < 1:
            raise ValueError("max_embedding_chars must be >= 1")
        if self.cache_max_entries < 1:
            raise ValueError("cache_max_entries must be >= 1")

    @classmethod
    def from_env(cls) -> SearchSettings:
        """
        Build settings from ``KB_RETRIEVAL_<FIELD>`` variables.

        Unset variables keep their defaults, e.g. ``KB_RETRIEVAL_BATCH_SIZE=5``.
        """
        overrides: dict[str, int | float] = {}
        for field in fields(cls):
            raw = os.getenv(f"{ENV_PREFIX}{field.name.upper()}")
            if raw is None or not raw.strip():
                continue
            caster = float if field.type in ("float", float) else int
            try:
                overrides[field.name] = caster(raw)
            except ValueError as exc:
                raise ValueError(
                    f"{ENV_PREFIX}{field.name.upper()} must be a number, got {raw!r}"
                ) from exc
        return cls(**overrides)
