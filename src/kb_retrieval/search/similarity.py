"""
Vector similarity helpers.
"""

from __future__ import annotations

import math
from typing import Sequence


class VectorDimensionMismatch(ValueError):
    """Two embeddings with different dimensionality were compared."""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Return dot(a, b) / (|a| * |b|), clamped to [-1, 1].

    A zero vector has no direction, so its similarity to anything is 0.0.
    """
    if len(a) != len(b):
        raise VectorDimensionMismatch(
            f"Cannot compare vectors of length {len(a)} and {len(b)}"
        )

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))
