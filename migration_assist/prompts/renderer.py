"""
Prompt template rendering.

Templates use ``{name}`` placeholders. Unlike ``str.format`` the renderer
leaves literal JSON braces in the template alone, and placeholders without
a value are kept verbatim so an incomplete mapping never raises.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def render_prompt(template: str, values: Mapping[str, Any] | None = None, **kwargs: Any) -> str:
    """Substitute every ``{name}`` token in *template* with its value."""
    merged: dict[str, Any] = dict(values or {})
    merged.update(kwargs)
    missing: set[str] = set()

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in merged:
            missing.add(name)
            return match.group(0)
        value = merged[name]
        return "" if value is None else str(value)

    rendered = _PLACEHOLDER_RE.sub(_substitute, template)
    if missing:
        logger.debug(f"[PROMPT] Unresolved placeholders left verbatim: {sorted(missing)}")
    return rendered


def placeholders(template: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    seen: list[str] = []
    for name in _PLACEHOLDER_RE.findall(template):
        if name not in seen:
            seen.append(name)
    return seen
