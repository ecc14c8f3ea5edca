"""
Persisted entities and their request payloads.

Ids are integers assigned by the repository. Update payloads carry only
optional fields; routes apply ``model_dump(exclude_unset=True)``. An
explicit null is accepted only for fields listed in ``nullable``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import Field, model_validator

from .enums import ContentType, InputDataStatus
from .schemas import (
    AcceptanceCriterionRecord,
    DocumentationLink,
    ImplementationStep,
    WireModel,
    WorkflowEdge,
    WorkflowNode,
)


class Entity(WireModel):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UpdatePayload(WireModel):
    nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self) -> "UpdatePayload":
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable:
                raise ValueError(f"{name} may not be null")
        return self


# ── Projects ─────────────────────────────────────────────


class ProjectCreate(WireModel):
    name: str = Field(min_length=1)
    description: str = ""
    type: str = "migration"  # migration, implementation, analysis
    customer: str = ""
    source_system: str = ""
    target_system: str = ""


class ProjectUpdate(UpdatePayload):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[str] = None
    customer: Optional[str] = None
    source_system: Optional[str] = None
    target_system: Optional[str] = None


class Project(Entity, ProjectCreate):
    pass


# ── Input data ───────────────────────────────────────────


class InputDataCreate(WireModel):
    name: str = Field(min_length=1)
    content_type: ContentType = ContentType.GENERAL
    content: str = Field(min_length=1)


class InputData(Entity):
    project_id: int
    name: str
    type: str = "text"
    content_type: ContentType = ContentType.GENERAL
    size: int = 0
    status: InputDataStatus = InputDataStatus.PROCESSING
    processed: bool = False
    content: str = ""
    metadata: dict[str, Any] = {}


# ── Requirements ─────────────────────────────────────────


class RequirementCreate(WireModel):
    title: str = Field(min_length=1)
    description: str = ""
    category: str = "functional"
    priority: str = "medium"
    source: str = ""
    input_data_id: Optional[int] = None


class RequirementUpdate(UpdatePayload):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    source: Optional[str] = None
    acceptance_criteria: Optional[list[AcceptanceCriterionRecord]] = None


class Requirement(Entity):
    project_id: int
    input_data_id: Optional[int] = None
    code_id: str = ""
    title: str
    description: str = ""
    category: str = "functional"
    priority: str = "medium"
    source: str = ""
    acceptance_criteria: list[AcceptanceCriterionRecord] = []


# ── Implementation tasks ─────────────────────────────────


class TaskCreate(WireModel):
    title: str = Field(min_length=1)
    description: str = ""
    system: str = ""
    task_type: str = ""
    complexity: str = "medium"
    estimated_hours: Optional[float] = None
    priority: str = "medium"
    status: str = "pending"
    assignee: Optional[str] = None
    dependencies: list[str] = []
    implementation_steps: list[ImplementationStep] = []
    sf_documentation_links: list[DocumentationLink] = []
    overall_documentation_links: list[str] = []


class TaskUpdate(UpdatePayload):
    nullable: ClassVar[frozenset[str]] = frozenset({"estimated_hours", "assignee"})

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    system: Optional[str] = None
    task_type: Optional[str] = None
    complexity: Optional[str] = None
    estimated_hours: Optional[float] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    assignee: Optional[str] = None
    implementation_steps: Optional[list[ImplementationStep]] = None


class ImplementationTask(Entity, TaskCreate):
    requirement_id: int


# ── Workflows ────────────────────────────────────────────


class WorkflowCreate(WireModel):
    name: str = Field(min_length=1)
    description: str = ""
    nodes: list[WorkflowNode] = []
    edges: list[WorkflowEdge] = []
    requirement_ids: list[int] = []


class WorkflowUpdate(UpdatePayload):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[str] = None
    nodes: Optional[list[WorkflowNode]] = None
    edges: Optional[list[WorkflowEdge]] = None


class Workflow(Entity, WorkflowCreate):
    project_id: int
    version: int = 1
    status: str = "draft"


# ── Activity feed ────────────────────────────────────────


class Activity(Entity):
    project_id: int
    type: str
    description: str
    related_entity_id: Optional[int] = None
