"""
Parsing Service — split source documents into model-sized chunks.

Chunks overlap so a requirement straddling a boundary is seen whole in at
least one of them. Breaks prefer paragraph ends, then sentence ends, within
the last ``_BREAK_WINDOW`` characters of each window.

Does NOT:
  • Read binary formats (PDF, audio, video)
  • Call any LLM
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_BREAK_WINDOW = 1000
_SENTENCE_END_RE = re.compile(r"[.!?]\s+[A-Z]")


class ParsingService:
    """
    Text preparation for requirement extraction.

        chunks = ParsingService.chunk_text(text, chunk_size=4000, overlap=500)
    """

    @staticmethod
    def chunk_text(text: str, chunk_size: int = 4000, overlap: int = 500) -> list[str]:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap > chunk_size // 2:
            raise ValueError("overlap must be between 0 and half of chunk_size")

        if len(text) <= chunk_size:
            return [text]

        chunks: list[str] = []
        start = 0
        while start < len(text):
            end = min(start + chunk_size, len(text))
            break_point = end
            if end < len(text):
                break_point = ParsingService._find_break(text, start, end)

            chunks.append(text[start:break_point])
            if break_point >= len(text):
                break
            # Next chunk starts `overlap` characters before the break, but each
            # step covers at least a quarter of a chunk
            start = max(start + max(1, (chunk_size - overlap) // 2), break_point - overlap)

        logger.debug(
            f"[PARSE] Split {len(text)} chars into {len(chunks)} chunks "
            f"(size={chunk_size}, overlap={overlap})"
        )
        return chunks

    @staticmethod
    def _find_break(text: str, start: int, end: int) -> int:
        """Best break point in (start, end]: paragraph end, then sentence end, else end."""
        search_start = end - min(_BREAK_WINDOW, (end - start) // 2)
        window = text[search_start:end]

        paragraph = window.rfind("\n\n")
        if paragraph != -1 and search_start + paragraph + 2 > start:
            return search_start + paragraph + 2

        sentence_ends = list(_SENTENCE_END_RE.finditer(window))
        if sentence_ends:
            # Break just after the punctuation mark
            candidate = search_start + sentence_ends[-1].start() + 1
            if candidate > start:
                return candidate

        return end
