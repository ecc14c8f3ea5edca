"""
Workflow routes — stored workflows, LLM workflow design and the canvas view.

Routes:
  GET    /api/projects/{project_id}/workflows          → list workflows
  POST   /api/projects/{project_id}/workflows          → create workflow
  POST   /api/projects/{project_id}/generate-workflow  → design a workflow from requirements
  GET    /api/workflows/{workflow_id}                  → workflow detail
  PATCH  /api/workflows/{workflow_id}                  → update workflow
  DELETE /api/workflows/{workflow_id}                  → delete workflow
  GET    /api/workflows/{workflow_id}/canvas           → nodes/edges in editor shape
  PUT    /api/workflows/{workflow_id}/canvas           → save nodes/edges from the editor

Handlers are plain ``def`` and run in the threadpool.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from migration_assist.api.dependencies import (
    get_activity_service,
    get_generation_service,
    get_repository,
    provider_param,
    require,
)
from migration_assist.api.routes import project_router
from migration_assist.models.entities import Workflow, WorkflowCreate, WorkflowUpdate
from migration_assist.models.enums import ActivityType, LLMProvider, ParseStrategy
from migration_assist.models.schemas import WireModel
from migration_assist.persistence.repository import PROJECTS, REQUIREMENTS, WORKFLOWS, BaseRepository
from migration_assist.services import workflow_adapter
from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService

logger = logging.getLogger(__name__)

workflow_router = APIRouter()


# ── Request / response schemas ───────────────────────────
class GenerateWorkflowRequest(WireModel):
    requirement_ids: list[int] = []
    name: Optional[str] = None


class GeneratedWorkflowResponse(WireModel):
    workflow: Workflow
    succeeded: bool
    strategy: ParseStrategy


class CanvasPayload(WireModel):
    nodes: list[dict[str, Any]] = []
    edges: list[dict[str, Any]] = []


def _dump(models: list[Any]) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json", by_alias=True) for m in models]


# ── Project workflows ────────────────────────────────────

@project_router.get("/{project_id}/workflows", response_model=list[Workflow])
def list_workflows(project_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, PROJECTS, project_id, "Project")
    return [Workflow.model_validate(w) for w in repo.list(WORKFLOWS, projectId=project_id)]


@project_router.post("/{project_id}/workflows", response_model=Workflow, status_code=201)
def create_workflow(
    project_id: int,
    body: WorkflowCreate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, PROJECTS, project_id, "Project")
    doc = body.model_dump(mode="json", by_alias=True)
    doc.update({"projectId": project_id, "version": 1, "status": "draft"})
    workflow = repo.create(WORKFLOWS, doc)
    activities.record(
        project_id, ActivityType.CREATED_WORKFLOW,
        f"Created workflow \"{workflow['name']}\"", workflow["id"],
    )
    return Workflow.model_validate(workflow)


@project_router.post("/{project_id}/generate-workflow", response_model=GeneratedWorkflowResponse)
def generate_workflow(
    project_id: int,
    body: Optional[GenerateWorkflowRequest] = None,
    provider: LLMProvider = Depends(provider_param),
    repo: BaseRepository = Depends(get_repository),
    generation: GenerationService = Depends(get_generation_service),
    activities: ActivityService = Depends(get_activity_service),
):
    project = require(repo, PROJECTS, project_id, "Project")
    body = body or GenerateWorkflowRequest()

    if body.requirement_ids:
        requirements = [require(repo, REQUIREMENTS, rid, "Requirement") for rid in body.requirement_ids]
        foreign = [r["id"] for r in requirements if r["projectId"] != project_id]
        if foreign:
            raise HTTPException(
                status_code=400,
                detail=f"Requirements {foreign} do not belong to project {project_id}",
            )
    else:
        requirements = repo.list(REQUIREMENTS, projectId=project_id)
    if not requirements:
        raise HTTPException(status_code=400, detail="No requirements to design a workflow from")

    result = generation.generate_workflow(
        project_name=project["name"],
        requirements=[
            {"id": r["id"], "title": r["title"], "description": r.get("description", "")}
            for r in requirements
        ],
        provider=provider,
    )
    definition = result.items[0]
    name = body.name or f"{project['name']} workflow"
    workflow = repo.create(WORKFLOWS, {
        "projectId": project_id,
        "name": name,
        "description": f"Generated from {len(requirements)} requirement(s)",
        "nodes": _dump(definition.nodes),
        "edges": _dump(definition.edges),
        "requirementIds": [r["id"] for r in requirements],
        "version": 1,
        "status": "draft",
    })
    logger.info(f"Stored workflow {workflow['id']} for project {project_id} ({result.strategy.value})")
    activities.record(
        project_id, ActivityType.GENERATED_WORKFLOW,
        f"Generated workflow \"{name}\" with {len(definition.nodes)} nodes", workflow["id"],
    )
    return GeneratedWorkflowResponse(
        workflow=Workflow.model_validate(workflow),
        succeeded=result.succeeded,
        strategy=result.strategy,
    )


# ── Workflows ────────────────────────────────────────────

@workflow_router.get("/{workflow_id}", response_model=Workflow)
def get_workflow(workflow_id: int, repo: BaseRepository = Depends(get_repository)):
    return Workflow.model_validate(require(repo, WORKFLOWS, workflow_id, "Workflow"))


@workflow_router.patch("/{workflow_id}", response_model=Workflow)
def update_workflow(
    workflow_id: int,
    body: WorkflowUpdate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    current = require(repo, WORKFLOWS, workflow_id, "Workflow")
    changes = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    if "nodes" in changes or "edges" in changes:
        changes["version"] = current.get("version", 1) + 1
    workflow = repo.update(WORKFLOWS, workflow_id, changes)
    activities.record(
        workflow["projectId"], ActivityType.UPDATED_WORKFLOW,
        f"Updated workflow \"{workflow['name']}\"", workflow_id,
    )
    return Workflow.model_validate(workflow)


@workflow_router.delete("/{workflow_id}", status_code=204)
def delete_workflow(
    workflow_id: int,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    workflow = require(repo, WORKFLOWS, workflow_id, "Workflow")
    repo.delete(WORKFLOWS, workflow_id)
    activities.record(
        workflow["projectId"], ActivityType.DELETED_WORKFLOW,
        f"Deleted workflow \"{workflow['name']}\"",
    )
    return Response(status_code=204)


@workflow_router.get("/{workflow_id}/canvas", response_model=CanvasPayload)
def get_canvas(workflow_id: int, repo: BaseRepository = Depends(get_repository)):
    workflow = Workflow.model_validate(require(repo, WORKFLOWS, workflow_id, "Workflow"))
    return CanvasPayload(
        nodes=workflow_adapter.to_canvas_nodes(workflow.nodes),
        edges=workflow_adapter.to_canvas_edges(workflow.edges),
    )


@workflow_router.put("/{workflow_id}/canvas", response_model=Workflow)
def save_canvas(
    workflow_id: int,
    body: CanvasPayload,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    current = require(repo, WORKFLOWS, workflow_id, "Workflow")
    try:
        nodes = workflow_adapter.from_canvas_nodes(body.nodes)
        edges = workflow_adapter.from_canvas_edges(body.edges)
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid canvas payload: {exc}")

    node_ids = {n.id for n in nodes}
    dangling = [e.id for e in edges if e.source not in node_ids or e.target not in node_ids]
    if dangling:
        raise HTTPException(status_code=422, detail=f"Edges reference unknown nodes: {dangling}")

    workflow = repo.update(WORKFLOWS, workflow_id, {
        "nodes": _dump(nodes),
        "edges": _dump(edges),
        "version": current.get("version", 1) + 1,
    })
    activities.record(
        workflow["projectId"], ActivityType.UPDATED_WORKFLOW,
        f"Saved workflow \"{workflow['name']}\" (version {workflow['version']})", workflow_id,
    )
    return Workflow.model_validate(workflow)
