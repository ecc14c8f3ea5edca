"""
Record schemas produced by the structured-output extractor.

Each record is created fresh per extraction call and handed to the CRUD
layer, which assigns the persistent id. Wire format is camelCase, matching
what the prompts ask the model to emit.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import ParseStrategy

T = TypeVar("T")


class WireModel(BaseModel):
    """Base for models exchanged with the model and the frontend in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordModel(WireModel):
    """Extraction record: unknown keys sent by the model are preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


# ── Requirements ─────────────────────────────────────────


class RequirementRecord(RecordModel):
    """A requirement extracted from a source document."""
    title: str
    description: str = ""
    category: str = "functional"  # functional, non-functional, security, performance
    priority: str = "medium"  # high, medium, low


# ── Acceptance criteria ──────────────────────────────────


class AcceptanceCriterionRecord(RecordModel):
    title: str
    description: str = ""  # Gherkin text (Given / When / Then)
    type: str = "functional"
    status: str = "pending"


# ── Implementation tasks ─────────────────────────────────


class ImplementationStep(RecordModel):
    step_number: int = Field(default=1, ge=1)
    step_description: str = ""
    relevant_documentation_links: list[str] = []


class DocumentationLink(RecordModel):
    title: str = ""
    url: str = ""


class ImplementationTaskRecord(RecordModel):
    title: str
    description: str = ""
    system: str = ""
    task_type: str = ""
    complexity: str = "medium"  # low, medium, high
    estimated_hours: Optional[float] = None
    priority: str = "medium"
    status: str = "pending"
    dependencies: list[str] = []
    implementation_steps: list[ImplementationStep] = []
    sf_documentation_links: list[DocumentationLink] = []
    overall_documentation_links: list[str] = []


# ── Workflows ────────────────────────────────────────────


class WorkflowPosition(BaseModel):
    x: float = 0.0
    y: float = 0.0


class WorkflowNodeData(RecordModel):
    label: str = "Unnamed"
    description: Optional[str] = None
    requirement_id: Optional[int] = None
    task_id: Optional[int] = None
    properties: dict[str, Any] = {}


class WorkflowNode(WireModel):
    id: str
    type: str = "task"
    position: WorkflowPosition = Field(default_factory=WorkflowPosition)
    data: WorkflowNodeData = Field(default_factory=WorkflowNodeData)


class WorkflowEdge(WireModel):
    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: Optional[str] = None
    animated: bool = False


class WorkflowDefinition(WireModel):
    nodes: list[WorkflowNode] = []
    edges: list[WorkflowEdge] = []


# ── Extraction outcome ───────────────────────────────────


class ExtractionResult(BaseModel, Generic[T]):
    """
    Outcome of one extraction attempt.

    ``succeeded`` is False when only the fallback was used, so callers can
    tell the user the model's output was ignored instead of masking it.
    """
    items: list[T] = []
    succeeded: bool = False
    strategy: ParseStrategy = ParseStrategy.FALLBACK
