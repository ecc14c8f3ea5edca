"""
Small text helpers shared by the extractor, services and routes.
"""

from __future__ import annotations

import re

_WS_RE = re.compile(r"\s+")


def truncate(text: str, limit: int = 100, suffix: str = "...") -> str:
    """Cut *text* to *limit* characters, appending *suffix* when shortened."""
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + suffix


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace and lowercase, for duplicate detection."""
    return _WS_RE.sub(" ", (text or "").strip().lower())


def first_words(text: str, count: int = 8) -> str:
    """Return the first *count* words of *text* (used to derive titles)."""
    words = (text or "").split()
    if not words:
        return ""
    title = " ".join(words[:count])
    return title.rstrip(".,;:") + ("…" if len(words) > count else "")
