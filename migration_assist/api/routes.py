"""
API routes — projects, source documents and requirement generation.

Routes:
  GET    /health
  GET    /api/projects                              → list projects
  POST   /api/projects                              → create project
  GET    /api/projects/{project_id}                 → project detail
  PATCH  /api/projects/{project_id}                 → update project
  DELETE /api/projects/{project_id}                 → delete project and its children
  GET    /api/projects/{project_id}/activities      → activity feed
  GET    /api/projects/{project_id}/input-data      → list source documents
  POST   /api/projects/{project_id}/input-data      → add a text source document
  GET    /api/input-data/{input_id}                 → source document detail
  DELETE /api/input-data/{input_id}                 → delete source document
  POST   /api/input-data/{input_id}/generate-requirements → LLM requirement extraction
  GET    /api/projects/{project_id}/export          → requirements export (JSON)
  GET    /api/activities                            → activity across all projects

Handlers are plain ``def``: repository and LLM calls block, so FastAPI
runs them in its threadpool.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from migration_assist.api.dependencies import (
    get_activity_service,
    get_generation_service,
    get_repository,
    provider_param,
    require,
)
from migration_assist.models.entities import (
    Activity,
    InputData,
    InputDataCreate,
    Project,
    ProjectCreate,
    ProjectUpdate,
    Requirement,
)
from migration_assist.models.enums import ActivityType, InputDataStatus, LLMProvider, ParseStrategy
from migration_assist.models.schemas import WireModel
from migration_assist.persistence.repository import (
    ACTIVITIES,
    INPUT_DATA,
    PROJECTS,
    REQUIREMENTS,
    TASKS,
    WORKFLOWS,
    BaseRepository,
)
from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService
from migration_assist.services.llm_service import LLMServiceError

logger = logging.getLogger(__name__)

# ── Routers ──────────────────────────────────────────────
health_router = APIRouter()
project_router = APIRouter()
input_data_router = APIRouter()
activity_router = APIRouter()


# ── Response schemas ─────────────────────────────────────
class GeneratedRequirementsResponse(WireModel):
    input_data_id: int
    requirements: list[Requirement]
    succeeded: bool
    strategy: ParseStrategy


class ExportedProject(WireModel):
    name: str
    description: str
    type: str
    source_system: str
    target_system: str
    export_date: datetime


class ExportedRequirement(WireModel):
    id: str
    title: str
    description: str
    category: str
    priority: str
    source: str


class ProjectExport(WireModel):
    project: ExportedProject
    requirements: list[ExportedRequirement]


class ProjectActivity(Activity):
    project_name: str


# ── Health ───────────────────────────────────────────────

@health_router.get("/health")
async def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Projects ─────────────────────────────────────────────

@project_router.get("", response_model=list[Project])
def list_projects(repo: BaseRepository = Depends(get_repository)):
    return [Project.model_validate(p) for p in repo.list(PROJECTS)]


@project_router.post("", response_model=Project, status_code=201)
def create_project(
    body: ProjectCreate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    project = repo.create(PROJECTS, body.model_dump(mode="json", by_alias=True))
    activities.record(
        project["id"], ActivityType.CREATED_PROJECT,
        f"Created project \"{project['name']}\"", project["id"],
    )
    logger.info(f"Created project {project['id']}: {project['name']}")
    return Project.model_validate(project)


@project_router.get("/{project_id}", response_model=Project)
def get_project(project_id: int, repo: BaseRepository = Depends(get_repository)):
    return Project.model_validate(require(repo, PROJECTS, project_id, "Project"))


@project_router.patch("/{project_id}", response_model=Project)
def update_project(
    project_id: int,
    body: ProjectUpdate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, PROJECTS, project_id, "Project")
    changes = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    project = repo.update(PROJECTS, project_id, changes)
    activities.record(
        project_id, ActivityType.UPDATED_PROJECT,
        f"Updated project \"{project['name']}\"", project_id,
    )
    return Project.model_validate(project)


@project_router.delete("/{project_id}", status_code=204)
def delete_project(project_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, PROJECTS, project_id, "Project")
    for requirement in repo.list(REQUIREMENTS, projectId=project_id):
        repo.delete_where(TASKS, requirementId=requirement["id"])
    removed = {
        "requirements": repo.delete_where(REQUIREMENTS, projectId=project_id),
        "input_data": repo.delete_where(INPUT_DATA, projectId=project_id),
        "workflows": repo.delete_where(WORKFLOWS, projectId=project_id),
        "activities": repo.delete_where(ACTIVITIES, projectId=project_id),
    }
    repo.delete(PROJECTS, project_id)
    logger.info(f"Deleted project {project_id} ({removed})")
    return Response(status_code=204)


@project_router.get("/{project_id}/activities", response_model=list[Activity])
def list_activities(
    project_id: int,
    limit: Optional[int] = Query(default=None, ge=1),
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, PROJECTS, project_id, "Project")
    return [Activity.model_validate(a) for a in activities.get_feed(project_id, limit)]


@project_router.get("/{project_id}/export", response_model=ProjectExport)
def export_project(project_id: int, repo: BaseRepository = Depends(get_repository)):
    project = Project.model_validate(require(repo, PROJECTS, project_id, "Project"))
    requirements = [Requirement.model_validate(r) for r in repo.list(REQUIREMENTS, projectId=project_id)]
    logger.info(f"Exporting {len(requirements)} requirements for project {project_id}")
    return ProjectExport(
        project=ExportedProject(
            name=project.name,
            description=project.description,
            type=project.type,
            source_system=project.source_system,
            target_system=project.target_system,
            export_date=datetime.now(timezone.utc),
        ),
        requirements=[
            ExportedRequirement(
                id=r.code_id,
                title=r.title,
                description=r.description,
                category=r.category,
                priority=r.priority,
                source=r.source,
            )
            for r in requirements
        ],
    )


@activity_router.get("", response_model=list[ProjectActivity])
def list_recent_activities(
    limit: int = Query(default=10, ge=1),
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    names = {p["id"]: p["name"] for p in repo.list(PROJECTS)}
    return [
        ProjectActivity.model_validate({**a, "projectName": names.get(a["projectId"], "Unknown project")})
        for a in activities.get_recent(limit)
    ]


# ── Source documents ─────────────────────────────────────

@project_router.get("/{project_id}/input-data", response_model=list[InputData])
def list_input_data(project_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, PROJECTS, project_id, "Project")
    return [InputData.model_validate(d) for d in repo.list(INPUT_DATA, projectId=project_id)]


@project_router.post("/{project_id}/input-data", response_model=InputData, status_code=201)
def create_input_data(
    project_id: int,
    body: InputDataCreate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, PROJECTS, project_id, "Project")
    doc = body.model_dump(mode="json", by_alias=True)
    doc.update({
        "projectId": project_id,
        "type": "text",
        "size": len(body.content.encode("utf-8")),
        "status": InputDataStatus.PROCESSING.value,
        "processed": False,
        "metadata": {},
    })
    input_data = repo.create(INPUT_DATA, doc)
    activities.record(
        project_id, ActivityType.UPLOADED_INPUT,
        f"Added source document \"{input_data['name']}\"", input_data["id"],
    )
    return InputData.model_validate(input_data)


@input_data_router.get("/{input_id}", response_model=InputData)
def get_input_data(input_id: int, repo: BaseRepository = Depends(get_repository)):
    return InputData.model_validate(require(repo, INPUT_DATA, input_id, "Input data"))


@input_data_router.delete("/{input_id}", status_code=204)
def delete_input_data(input_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, INPUT_DATA, input_id, "Input data")
    repo.delete(INPUT_DATA, input_id)
    return Response(status_code=204)


@input_data_router.post(
    "/{input_id}/generate-requirements", response_model=GeneratedRequirementsResponse
)
def generate_requirements(
    input_id: int,
    min_requirements: Optional[int] = Query(default=None, ge=1),
    provider: LLMProvider = Depends(provider_param),
    repo: BaseRepository = Depends(get_repository),
    generation: GenerationService = Depends(get_generation_service),
    activities: ActivityService = Depends(get_activity_service),
):
    input_data = require(repo, INPUT_DATA, input_id, "Input data")
    project = require(repo, PROJECTS, input_data["projectId"], "Project")
    if not input_data.get("content", "").strip():
        raise HTTPException(status_code=400, detail="Input data has no text content")

    repo.update(INPUT_DATA, input_id, {"status": InputDataStatus.PROCESSING.value})
    try:
        result = generation.generate_requirements_for_document(
            input_data["content"],
            project_name=project["name"],
            file_name=input_data["name"],
            content_type=input_data.get("contentType", "general"),
            min_requirements=min_requirements,
            provider=provider,
        )
    except LLMServiceError as exc:
        logger.error(f"Requirement generation failed for input {input_id}: {exc}")
        repo.update(INPUT_DATA, input_id, {
            "status": InputDataStatus.FAILED.value,
            "metadata": {**input_data.get("metadata", {}), "error": str(exc)},
        })
        raise

    created = []
    for record in result.items:
        extras = record.model_extra or {}
        created.append(repo.create(REQUIREMENTS, {
            "projectId": project["id"],
            "inputDataId": input_id,
            "codeId": next_code_id(repo, project["id"]),
            "title": record.title,
            "description": record.description,
            "category": record.category,
            "priority": record.priority,
            "source": str(extras.get("source") or f"Generated from {input_data['name']}"),
            "acceptanceCriteria": [],
        }))

    repo.update(INPUT_DATA, input_id, {
        "status": InputDataStatus.COMPLETED.value,
        "processed": True,
        "metadata": {
            **input_data.get("metadata", {}),
            "requirementsGenerated": len(created),
            "succeeded": result.succeeded,
            "strategy": result.strategy.value,
            "provider": provider.value,
        },
    })
    activities.record(
        project["id"], ActivityType.GENERATED_REQUIREMENTS,
        f"Generated {len(created)} requirements from \"{input_data['name']}\"", input_id,
    )
    return GeneratedRequirementsResponse(
        input_data_id=input_id,
        requirements=[Requirement.model_validate(r) for r in created],
        succeeded=result.succeeded,
        strategy=result.strategy,
    )


def next_code_id(repo: BaseRepository, project_id: int) -> str:
    """Next ``REQ-nnn`` code within a project. Codes are never reused."""
    return f"REQ-{repo.next_sequence(f'requirement-code-{project_id}'):03d}"
