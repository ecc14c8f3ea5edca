"""
Extraction Service — turn free-form LLM output into typed records.

The model is asked for JSON but may wrap it in markdown fences, surround it
with prose, or ignore the instructions altogether. Every response goes
through the same ordered attempts, first success wins:

  1. strip markdown code fences (no-op when absent)
  2. strict ``json.loads`` of the cleaned text
  3. bracket-counting scan for the first balanced ``[ { ... } ]`` span
     (and ``{ ... }`` spans when single objects are accepted) that parses
  4. the caller's fallback record, with ``succeeded=False``

Accepted records then pass through a per-record normalizer that fills
missing fields with safe defaults. Nothing in this module raises on bad
model output and nothing keeps state between calls.

The scanner tracks JSON string literals, so brackets inside quoted values
do not break matching. An object array truncated mid-element keeps the
objects that were complete before the cut.
"""

from __future__ import annotations

import json
import logging
import re
from functools import partial
from typing import Any, Callable, Iterator, Optional, Type

from pydantic import BaseModel

from migration_assist.models.enums import ParseStrategy
from migration_assist.models.schemas import (
    AcceptanceCriterionRecord,
    ExtractionResult,
    ImplementationTaskRecord,
    RequirementRecord,
    WorkflowDefinition,
)
from migration_assist.utils.text import first_words, truncate

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Normalizer = Callable[[Record, int], Record]

_FENCE_OPEN_RE = re.compile(r"^```[ \t]*(?:json)?[ \t]*(?:\r?\n)?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"(?:\r?\n)?[ \t]*```$")
_CLOSERS = {"[": "]", "{": "}"}
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_SCENARIO_RE = re.compile(r"^\s*Scenario(?: Outline)?:\s*(.+)$", re.IGNORECASE | re.MULTILINE)

# Raw text excerpt length used by fallback records
FALLBACK_EXCERPT_LENGTH = 100


# ── Fence stripping ──────────────────────────────────────


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` / ```json marker and a trailing ``` marker."""
    cleaned = (text or "").strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


# ── Balanced span scanning ───────────────────────────────


def _match_closing(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at *start*, or None if unbalanced."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "]}":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i
    return None


def _opens_object_array(text: str, start: int) -> bool:
    """True when the ``[`` at *start* is followed (after whitespace) by ``{``."""
    for i in range(start + 1, len(text)):
        if not text[i].isspace():
            return text[i] == "{"
    return False


def _complete_elements(text: str, start: int) -> Optional[str]:
    """
    Rebuild an unterminated array from the complete objects after the ``[``
    at *start*. None when not even the first object is complete.
    """
    objects: list[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch.isspace() or ch == ",":
            i += 1
            continue
        if ch != "{":
            break
        end = _match_closing(text, i)
        if end is None:
            break
        objects.append(text[i:end + 1])
        i = end + 1
    if not objects:
        return None
    logger.warning(
        f"[EXTRACT] Unterminated array at offset {start} — keeping {len(objects)} complete objects"
    )
    return "[" + ",".join(objects) + "]"


def iter_balanced_spans(text: str, accept_object: bool = False) -> Iterator[str]:
    """
    Yield balanced candidate spans in order of their starting position.

    Arrays only qualify when their first element is an object. Bare objects
    qualify only when *accept_object* is set. An array cut off before its
    closing bracket (output truncated at the token limit) yields the
    complete objects it holds, rebuilt as an array.
    """
    for start, ch in enumerate(text):
        if ch == "[":
            if not _opens_object_array(text, start):
                continue
        elif ch == "{":
            if not accept_object:
                continue
        else:
            continue
        end = _match_closing(text, start)
        if end is not None:
            yield text[start:end + 1]
        elif ch == "[":
            rebuilt = _complete_elements(text, start)
            if rebuilt is not None:
                yield rebuilt


# ── Parse attempts ───────────────────────────────────────


def _as_record_list(data: Any, accept_object: bool) -> Optional[list[Any]]:
    """Coerce parsed JSON into a list of candidate records, or None."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if accept_object:
            return [data]
        # {"requirements": [...]} style wrappers around the expected array
        lists = [v for v in data.values() if isinstance(v, list) and v and isinstance(v[0], dict)]
        if len(lists) == 1:
            return lists[0]
    return None


def _strict_parse(text: str, accept_object: bool) -> Optional[list[Any]]:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return _as_record_list(data, accept_object)


def _pattern_parse(text: str, accept_object: bool) -> Optional[list[Any]]:
    for span in iter_balanced_spans(text, accept_object):
        try:
            data = json.loads(span)
        except (ValueError, RecursionError):
            continue
        records = _as_record_list(data, accept_object)
        if records is not None:
            return records
    return None


def extract_records(
    raw_text: Any,
    normalize: Normalizer,
    fallback: Optional[Callable[[], Record]] = None,
    accept_object: bool = False,
    record_type: Optional[Type[BaseModel]] = None,
    label: str = "records",
) -> ExtractionResult:
    """
    Extract and normalize records from raw model output. Never raises.

    *fallback* builds the single record returned when no attempt succeeds;
    without one the result is explicitly empty. *record_type*, when given,
    validates each normalized dict into that model.
    """
    text = raw_text if isinstance(raw_text, str) else ("" if raw_text is None else str(raw_text))
    cleaned = strip_code_fences(text)

    strategy = ParseStrategy.STRICT
    data = _strict_parse(cleaned, accept_object)
    if data is None:
        logger.debug(f"[EXTRACT] Strict parse failed for {label} — scanning for JSON spans")
        strategy = ParseStrategy.PATTERN
        data = _pattern_parse(cleaned, accept_object)

    items: list[Any] = []
    if data is not None:
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                logger.warning(
                    f"[EXTRACT] Skipping non-object {label} element {index}: {truncate(repr(item), 80)}"
                )
                continue
            try:
                record = normalize(item, index)
                items.append(record_type.model_validate(record) if record_type else record)
            except (ValueError, TypeError) as exc:
                logger.warning(f"[EXTRACT] Skipping invalid {label} element {index}: {exc}")
        if data and not items:
            logger.warning(f"[EXTRACT] No usable {label} in parsed JSON — using fallback")
            data = None

    if data is None:
        logger.warning(
            f"[EXTRACT] All parse attempts failed for {label} "
            f"({len(text)} chars) — {'using fallback record' if fallback else 'returning no records'}"
        )
        logger.debug(f"[EXTRACT] Raw response: {truncate(text, 500)}")
        items = []
        if fallback is not None:
            record = fallback()
            items.append(record_type.model_validate(record) if record_type else record)
        return _result(record_type, items, False, ParseStrategy.FALLBACK)

    logger.info(f"[EXTRACT] {len(items)} {label} extracted via {strategy.value} parse")
    return _result(record_type, items, True, strategy)


def _result(record_type, items, succeeded, strategy) -> ExtractionResult:
    result_cls = ExtractionResult[record_type] if record_type else ExtractionResult
    return result_cls(items=items, succeeded=succeeded, strategy=strategy)


# ── Field coercion helpers ───────────────────────────────


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _canonical(value: Any, aliases: dict[str, str], default: str, field: str) -> str:
    """Map known spellings onto the canonical value; pass unknown values through."""
    text = _text(value).strip()
    if not text:
        return default
    key = re.sub(r"[\s_]+", "-", text.lower())
    if key in aliases:
        return aliases[key]
    logger.warning(f"[EXTRACT] Unrecognised {field} {text!r} passed through")
    return text


def _string_list(value: Any) -> list[str]:
    """Coerce a list, JSON-encoded list or single string into a list of strings."""
    if value is None:
        return []
    if isinstance(value, list):
        return [_text(v) for v in value if v is not None and _text(v).strip()]
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        try:
            parsed = json.loads(stripped)
        except (ValueError, RecursionError):
            return [stripped]
        if isinstance(parsed, list):
            return _string_list(parsed)
        return [stripped]
    return [_text(value)]


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value >= 1 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number >= 1 else None
    return None


def _hours(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    match = _NUMBER_RE.search(_text(value))
    return float(match.group(0)) if match else None


# ── Requirements ─────────────────────────────────────────

CATEGORY_ALIASES = {
    "functional": "functional",
    "non-functional": "non-functional",
    "nonfunctional": "non-functional",
    "security": "security",
    "performance": "performance",
}

PRIORITY_ALIASES = {
    "high": "high",
    "medium": "medium",
    "med": "medium",
    "low": "low",
}


def normalize_requirement(record: Record, index: int) -> Record:
    """Fill requirement defaults; ``text`` is accepted as the description key."""
    normalized = dict(record)
    description = normalized.get("description")
    if not _text(description).strip() and _text(normalized.get("text")).strip():
        description = normalized.pop("text")
    normalized["description"] = _text(description)

    title = _text(normalized.get("title")).strip()
    if not title:
        title = first_words(normalized["description"]) or f"Requirement {index + 1}"
    normalized["title"] = title

    normalized["category"] = _canonical(
        normalized.get("category"), CATEGORY_ALIASES, "functional", "category"
    )
    normalized["priority"] = _canonical(
        normalized.get("priority"), PRIORITY_ALIASES, "medium", "priority"
    )
    return normalized


def extract_requirements(raw_text: Any) -> ExtractionResult:
    """Requirements have no fallback record: a failed parse yields none."""
    return extract_records(
        raw_text,
        normalize_requirement,
        fallback=None,
        accept_object=False,
        record_type=RequirementRecord,
        label="requirements",
    )


# ── Acceptance criteria ──────────────────────────────────

_GHERKIN_KEYS = ("given", "when", "and", "then")


def _gherkin_from_parts(record: Record) -> str:
    lines = []
    scenario = _text(record.get("scenario")).strip()
    if scenario:
        lines.append(f"Scenario: {scenario}")
    for key in _GHERKIN_KEYS:
        for k, v in record.items():
            if k.lower() == key and _text(v).strip():
                lines.append(f"{key.capitalize()} {_text(v).strip()}")
    return "\n".join(lines)


def normalize_acceptance_criterion(record: Record, index: int) -> Record:
    normalized = dict(record)
    description = _text(normalized.get("description"))
    if not description.strip():
        gherkin = normalized.get("gherkin")
        description = _gherkin_from_parts(gherkin if isinstance(gherkin, dict) else normalized)
    normalized["description"] = description

    title = _text(normalized.get("title")).strip()
    if not title:
        match = _SCENARIO_RE.search(description)
        title = match.group(1).strip() if match else f"Scenario {index + 1}"
    normalized["title"] = title

    normalized["type"] = _text(normalized.get("type")).strip() or "functional"
    # Review state belongs to the user, never to the model
    normalized["status"] = "pending"
    return normalized


def fallback_acceptance_criterion(requirement_text: str) -> Record:
    excerpt = truncate((requirement_text or "").strip(), FALLBACK_EXCERPT_LENGTH)
    return {
        "title": "Requirement is implemented as described",
        "description": (
            f"Scenario: Requirement is implemented as described\n"
            f"Given the requirement \"{excerpt}\"\n"
            f"When the implementation is reviewed by a stakeholder\n"
            f"Then the described behaviour is available in the target system"
        ),
        "type": "functional",
        "status": "pending",
    }


def extract_acceptance_criteria(raw_text: Any, requirement_text: str) -> ExtractionResult:
    return extract_records(
        raw_text,
        normalize_acceptance_criterion,
        fallback=partial(fallback_acceptance_criterion, requirement_text),
        accept_object=True,
        record_type=AcceptanceCriterionRecord,
        label="acceptance criteria",
    )


# ── Implementation tasks ─────────────────────────────────

COMPLEXITY_ALIASES = {
    "low": "low",
    "simple": "low",
    "easy": "low",
    "medium": "medium",
    "moderate": "medium",
    "high": "high",
    "complex": "high",
    "hard": "high",
}


def _normalize_step(step: Any, index: int) -> Record:
    if not isinstance(step, dict):
        return {
            "stepNumber": index + 1,
            "stepDescription": _text(step),
            "relevantDocumentationLinks": [],
        }
    return {
        "stepNumber": _positive_int(step.get("stepNumber")) or index + 1,
        "stepDescription": _text(step.get("stepDescription") or step.get("description")),
        "relevantDocumentationLinks": _string_list(step.get("relevantDocumentationLinks")),
    }


def _doc_link(value: Any) -> Optional[Record]:
    if isinstance(value, dict):
        url = _text(value.get("url") or value.get("link")).strip()
        if not url:
            return None
        return {"title": _text(value.get("title") or value.get("documentTitle")), "url": url}
    url = _text(value).strip()
    return {"title": "", "url": url} if url else None


def normalize_implementation_task(record: Record, index: int, default_system: str = "") -> Record:
    """Fill task defaults; missing steps become ``[]`` and steps keep their numbering."""
    normalized = dict(record)
    normalized["description"] = _text(normalized.get("description"))

    title = _text(normalized.get("title")).strip()
    if not title:
        title = first_words(normalized["description"]) or f"Task {index + 1}"
    normalized["title"] = title

    steps = normalized.get("implementationSteps")
    if isinstance(steps, list):
        normalized["implementationSteps"] = [_normalize_step(s, i) for i, s in enumerate(steps)]
    else:
        normalized["implementationSteps"] = []

    overall = _string_list(normalized.get("overallDocumentationLinks"))
    sf_links = [
        link for link in (_doc_link(v) for v in _as_list(normalized.get("sfDocumentationLinks")))
        if link
    ]
    # relevantDocuments ({documentTitle, link}) is folded into both link lists
    for doc in _as_list(normalized.pop("relevantDocuments", None)):
        link = _doc_link(doc)
        if link:
            overall.append(link["url"])
            if link["title"]:
                sf_links.append(link)
    normalized["overallDocumentationLinks"] = overall
    normalized["sfDocumentationLinks"] = sf_links

    normalized["dependencies"] = _string_list(normalized.get("dependencies"))
    normalized["system"] = _text(normalized.get("system")).strip() or default_system
    normalized["taskType"] = _text(normalized.get("taskType")).strip()
    normalized["complexity"] = _canonical(
        normalized.get("complexity"), COMPLEXITY_ALIASES, "medium", "complexity"
    )
    normalized["priority"] = _canonical(
        normalized.get("priority"), PRIORITY_ALIASES, "medium", "priority"
    )
    normalized["estimatedHours"] = _hours(normalized.get("estimatedHours"))
    normalized["status"] = _text(normalized.get("status")).strip() or "pending"
    return normalized


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def fallback_implementation_task(requirement_text: str, target_system: str = "") -> Record:
    """Generic task used when the model's output could not be parsed."""
    excerpt = truncate((requirement_text or "").strip(), FALLBACK_EXCERPT_LENGTH)
    target = target_system or "the target system"
    return {
        "title": "Implement requirement",
        "description": (
            f"{excerpt}\n\nImplement this requirement in {target}. "
            f"Review the acceptance criteria and break the work down into steps."
        ),
        "system": target_system,
        "taskType": "development",
        "complexity": "medium",
        "estimatedHours": 8,
        "priority": "medium",
        "status": "pending",
        "dependencies": [],
        "implementationSteps": [],
        "sfDocumentationLinks": [],
        "overallDocumentationLinks": [],
    }


def extract_implementation_tasks(
    raw_text: Any, requirement_text: str, target_system: str = ""
) -> ExtractionResult:
    return extract_records(
        raw_text,
        partial(normalize_implementation_task, default_system=target_system),
        fallback=partial(fallback_implementation_task, requirement_text, target_system),
        accept_object=True,
        record_type=ImplementationTaskRecord,
        label="implementation tasks",
    )


# ── Workflows ────────────────────────────────────────────

NODE_TYPE_ALIASES = {
    "start": "start",
    "start-event": "start",
    "end": "end",
    "end-event": "end",
    "task": "task",
    "user-task": "userTask",
    "usertask": "userTask",
    "decision": "decision",
    "subprocess": "subprocess",
    "parallel": "parallel",
    "parallel-gw": "parallel",
    "parallel-gateway": "parallel",
    "notification": "notification",
    "send": "send",
    "send-event": "send",
    "receive": "receive",
    "receive-event": "receive",
}

# Vertical layout used when the model omits node positions
_LAYOUT_X = 250.0
_LAYOUT_STEP_Y = 120.0


def _node_type(node: Record, data: Record) -> str:
    raw = data.get("nodeType") or node.get("type")
    text = _text(raw).strip()
    if not text or text == "default":
        return "task"
    key = re.sub(r"[\s_]+", "-", text.lower())
    if key in NODE_TYPE_ALIASES:
        return NODE_TYPE_ALIASES[key]
    logger.warning(f"[EXTRACT] Unknown workflow node type {text!r} mapped to task")
    return "task"


def _position(value: Any, index: int) -> Record:
    if isinstance(value, dict):
        x, y = value.get("x"), value.get("y")
        if isinstance(x, (int, float)) and isinstance(y, (int, float)) \
                and not isinstance(x, bool) and not isinstance(y, bool):
            return {"x": x, "y": y}
    return {"x": _LAYOUT_X, "y": _LAYOUT_STEP_Y * index}


def normalize_workflow(record: Record, index: int) -> Record:
    """Map node display types onto node kinds, lay out unplaced nodes, drop dangling edges."""
    nodes: list[Record] = []
    seen: set[str] = set()
    for i, node in enumerate(_as_list(record.get("nodes"))):
        if not isinstance(node, dict):
            logger.warning(f"[EXTRACT] Skipping non-object workflow node {i}")
            continue
        node_id = _text(node.get("id")).strip() or f"node-{i + 1}"
        if node_id in seen:
            logger.warning(f"[EXTRACT] Skipping duplicate workflow node id {node_id!r}")
            continue
        seen.add(node_id)
        data = dict(node["data"]) if isinstance(node.get("data"), dict) else {}
        data["label"] = _text(data.get("label") or node.get("label")).strip() or node_id
        for key in ("requirementId", "taskId"):
            if key in data:
                data[key] = _positive_int(data[key])
        if "description" in data and data["description"] is not None:
            data["description"] = _text(data["description"])
        if not isinstance(data.get("properties", {}), dict):
            data["properties"] = {}
        nodes.append({
            "id": node_id,
            "type": _node_type(node, data),
            "position": _position(node.get("position"), i),
            "data": data,
        })

    edges: list[Record] = []
    for i, edge in enumerate(_as_list(record.get("edges"))):
        if not isinstance(edge, dict):
            logger.warning(f"[EXTRACT] Skipping non-object workflow edge {i}")
            continue
        source = _text(edge.get("source")).strip()
        target = _text(edge.get("target")).strip()
        if source not in seen or target not in seen:
            logger.warning(
                f"[EXTRACT] Dropping workflow edge {edge.get('id')!r}: "
                f"unknown endpoint {source!r} -> {target!r}"
            )
            continue
        label = edge.get("label")
        edges.append({
            "id": _text(edge.get("id")).strip() or f"edge-{source}-{target}",
            "source": source,
            "target": target,
            "label": _text(label) if label not in (None, "") else None,
            "type": _text(edge.get("type")) or None,
            "animated": bool(edge.get("animated", False)),
        })

    return {"nodes": nodes, "edges": edges}


def fallback_workflow(title: str) -> Record:
    label = truncate((title or "").strip(), 60) or "requirement"
    return {
        "nodes": [
            {"id": "start", "type": "start", "position": {"x": _LAYOUT_X, "y": 0.0},
             "data": {"label": "Start", "nodeType": "Start Event"}},
            {"id": "task-1", "type": "task", "position": {"x": _LAYOUT_X, "y": _LAYOUT_STEP_Y},
             "data": {"label": f"Implement {label}", "nodeType": "Task"}},
            {"id": "end", "type": "end", "position": {"x": _LAYOUT_X, "y": _LAYOUT_STEP_Y * 2},
             "data": {"label": "End", "nodeType": "End Event"}},
        ],
        "edges": [
            {"id": "edge-start-task-1", "source": "start", "target": "task-1", "animated": False},
            {"id": "edge-task-1-end", "source": "task-1", "target": "end", "animated": False},
        ],
    }


def extract_workflow(raw_text: Any, title: str) -> ExtractionResult:
    """A workflow is one object; a parse that yields no nodes counts as a failure."""
    result = extract_records(
        raw_text,
        normalize_workflow,
        fallback=partial(fallback_workflow, title),
        accept_object=True,
        record_type=WorkflowDefinition,
        label="workflow",
    )
    if result.succeeded and not (result.items and result.items[0].nodes):
        logger.warning("[EXTRACT] Parsed workflow has no nodes — using fallback workflow")
        return _result(
            WorkflowDefinition,
            [WorkflowDefinition.model_validate(fallback_workflow(title))],
            False,
            ParseStrategy.FALLBACK,
        )
    return result
