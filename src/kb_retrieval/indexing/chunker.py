"""
Chunking utilities for embedding document content.
"""

from __future__ import annotations

import re
from typing import Callable


_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

_PARAGRAPH_JOINER = "\n\n"
_SENTENCE_JOINER = " "


class TextSegmenter:
    """
    Recursive paragraph -> sentence -> fixed-width splitter.

    Paragraphs (blank-line delimited) are packed greedily while the chunk
    stays within ``chunk_size``. Text without paragraph breaks is packed by
    sentence instead, and text without sentence breaks is sliced into
    fixed-width windows that overlap by ``overlap`` characters. Only the
    fixed-width windows overlap; packed chunks end on a boundary.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        if overlap >= chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[str]:
        """Split text into ordered chunks. Short (or empty) text is one chunk."""
        if len(text) <= self.chunk_size:
            return [text]

        paragraphs = _PARAGRAPH_BREAK.split(text)
        if len(paragraphs) > 1:
            return self._pack(paragraphs, _PARAGRAPH_JOINER, self.split) or [""]

        sentences = _SENTENCE_BREAK.split(text)
        if len(sentences) > 1:
            return self._pack(sentences, _SENTENCE_JOINER, self._slice) or [""]

        return self._slice(text)

    def _pack(
        self,
        units: list[str],
        joiner: str,
        split_oversized: Callable[[str], list[str]],
    ) -> list[str]:
        chunks: list[str] = []
        current = ""
        for unit in units:
            if not unit:
                continue
            candidate_length = len(current) + len(joiner) + len(unit) if current else len(unit)
            if candidate_length <= self.chunk_size:
                current = f"{current}{joiner}{unit}" if current else unit
                continue

            if current:
                chunks.append(current)
                current = ""
            if len(unit) > self.chunk_size:
                chunks.extend(split_oversized(unit))
            else:
                current = unit

        if current:
            chunks.append(current)
        return chunks

    def _slice(self, text: str) -> list[str]:
        step = self.chunk_size - self.overlap
        chunks: list[str] = []
        for start in range(0, len(text), step):
            chunks.append(text[start : start + self.chunk_size])
            if start + self.chunk_size >= len(text):
                break
        return chunks


def split_text(text: str, max_chunk_size: int, overlap: int = 0) -> list[str]:
    """Functional shortcut for ``TextSegmenter(max_chunk_size, overlap).split(text)``."""
    return TextSegmenter(chunk_size=max_chunk_size, overlap=overlap).split(text)
