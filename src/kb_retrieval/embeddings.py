"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI embedding API. Failures never escape as exceptions:
every call resolves to either ``EmbeddingSuccess`` or ``EmbeddingUnavailable``
so callers can pick the next retrieval strategy from the value alone.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, TypeAlias

from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors


logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_MAX_CHARS = 8000

_MALFORMED_CODES = frozenset({400, 404, 413, 422})
_UNAUTHORIZED_CODES = frozenset({401, 403})
_QUOTA_CODES = frozenset({429})


class FailureKind(str, Enum):
    """Why an embedding could not be produced."""

    TRANSIENT = "transient"
    QUOTA = "quota"
    MALFORMED_INPUT = "malformed_input"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class EmbeddingSuccess:
    vector: list[float]


@dataclass(frozen=True)
class EmbeddingUnavailable:
    kind: FailureKind
    detail: str = ""


EmbeddingResult: TypeAlias = EmbeddingSuccess | EmbeddingUnavailable


class Embedder(Protocol):
    """Anything that turns text into an ``EmbeddingResult``."""

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed a single text."""


def classify_status_code(code: int | None) -> FailureKind:
    """Map an HTTP status code from the embedding API to a failure kind."""
    if code in _MALFORMED_CODES:
        return FailureKind.MALFORMED_INPUT
    if code in _UNAUTHORIZED_CODES:
        return FailureKind.UNAUTHORIZED
    if code in _QUOTA_CODES:
        return FailureKind.QUOTA
    return FailureKind.TRANSIENT


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        max_chars: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("KB_RETRIEVAL_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("KB_RETRIEVAL_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.max_chars = max_chars or _DEFAULT_MAX_CHARS

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    async def embed(self, text: str) -> EmbeddingResult:
        """Embed one text, truncated to ``max_chars`` before submission."""
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=[text[: self.max_chars]],
                config={
                    "task_type": "SEMANTIC_SIMILARITY",
                    "output_dimensionality": self.dim,
                },
            )
        except genai_errors.APIError as exc:
            kind = classify_status_code(exc.code)
            logger.warning("Embedding request rejected (%s, code=%s): %s", kind.value, exc.code, exc)
            return EmbeddingUnavailable(kind=kind, detail=str(exc))
        except Exception as exc:
            # Connection resets and timeouts surface from the HTTP transport.
            logger.warning("Embedding request failed: %s", exc)
            return EmbeddingUnavailable(kind=FailureKind.TRANSIENT, detail=str(exc))

        embeddings = getattr(result, "embeddings", None) or []
        values = getattr(embeddings[0], "values", None) if embeddings else None
        if not values:
            logger.warning("Embedding response contained no vector")
            return EmbeddingUnavailable(
                kind=FailureKind.MALFORMED_INPUT,
                detail="empty embedding response",
            )
        return EmbeddingSuccess(vector=list(values))
