"""
Requirement and implementation-task routes.

Routes:
  GET    /api/projects/{project_id}/requirements     → list requirements
  POST   /api/projects/{project_id}/requirements     → create requirement
  GET    /api/requirements/{requirement_id}          → requirement detail
  PATCH  /api/requirements/{requirement_id}          → update requirement
  DELETE /api/requirements/{requirement_id}          → delete requirement and its tasks
  POST   /api/requirements/{requirement_id}/generate-acceptance-criteria
  GET    /api/requirements/{requirement_id}/tasks    → list tasks
  POST   /api/requirements/{requirement_id}/tasks    → create task
  POST   /api/requirements/{requirement_id}/generate-tasks
  GET    /api/tasks/{task_id}                        → task detail
  PATCH  /api/tasks/{task_id}                        → update task
  DELETE /api/tasks/{task_id}                        → delete task
  GET    /api/projects/{project_id}/requirements/high-priority → newest high-priority requirements
  GET    /api/projects/{project_id}/tasks            → tasks across every requirement

Handlers are plain ``def`` and run in the threadpool.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from migration_assist.api.dependencies import (
    get_activity_service,
    get_generation_service,
    get_repository,
    provider_param,
    require,
)
from migration_assist.api.routes import next_code_id, project_router
from migration_assist.models.entities import (
    ImplementationTask,
    Requirement,
    RequirementCreate,
    RequirementUpdate,
    TaskCreate,
    TaskUpdate,
)
from migration_assist.models.enums import ActivityType, LLMProvider, ParseStrategy
from migration_assist.models.schemas import AcceptanceCriterionRecord, WireModel
from migration_assist.persistence.repository import PROJECTS, REQUIREMENTS, TASKS, BaseRepository
from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService

logger = logging.getLogger(__name__)

requirement_router = APIRouter()
task_router = APIRouter()


# ── Response schemas ─────────────────────────────────────
class GeneratedCriteriaResponse(WireModel):
    requirement: Requirement
    acceptance_criteria: list[AcceptanceCriterionRecord]
    succeeded: bool
    strategy: ParseStrategy


class GeneratedTasksResponse(WireModel):
    requirement_id: int
    tasks: list[ImplementationTask]
    succeeded: bool
    strategy: ParseStrategy


def requirement_text(requirement: dict[str, Any]) -> str:
    """Text sent to the model for a stored requirement."""
    return requirement.get("description") or requirement.get("title", "")


# ── Requirements ─────────────────────────────────────────

@project_router.get("/{project_id}/requirements", response_model=list[Requirement])
def list_requirements(project_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, PROJECTS, project_id, "Project")
    return [Requirement.model_validate(r) for r in repo.list(REQUIREMENTS, projectId=project_id)]


@project_router.get("/{project_id}/requirements/high-priority", response_model=list[Requirement])
def list_high_priority_requirements(
    project_id: int,
    limit: int = Query(default=4, ge=1),
    repo: BaseRepository = Depends(get_repository),
):
    require(repo, PROJECTS, project_id, "Project")
    requirements = repo.list(REQUIREMENTS, projectId=project_id, priority="high")
    requirements.reverse()
    return [Requirement.model_validate(r) for r in requirements[:limit]]


@project_router.post("/{project_id}/requirements", response_model=Requirement, status_code=201)
def create_requirement(
    project_id: int,
    body: RequirementCreate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, PROJECTS, project_id, "Project")
    doc = body.model_dump(mode="json", by_alias=True)
    doc.update({
        "projectId": project_id,
        "codeId": next_code_id(repo, project_id),
        "acceptanceCriteria": [],
    })
    requirement = repo.create(REQUIREMENTS, doc)
    activities.record(
        project_id, ActivityType.CREATED_REQUIREMENT,
        f"Created requirement {requirement['codeId']} \"{requirement['title']}\"", requirement["id"],
    )
    return Requirement.model_validate(requirement)


@requirement_router.get("/{requirement_id}", response_model=Requirement)
def get_requirement(requirement_id: int, repo: BaseRepository = Depends(get_repository)):
    return Requirement.model_validate(require(repo, REQUIREMENTS, requirement_id, "Requirement"))


@requirement_router.patch("/{requirement_id}", response_model=Requirement)
def update_requirement(
    requirement_id: int,
    body: RequirementUpdate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    require(repo, REQUIREMENTS, requirement_id, "Requirement")
    changes = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    requirement = repo.update(REQUIREMENTS, requirement_id, changes)
    activities.record(
        requirement["projectId"], ActivityType.UPDATED_REQUIREMENT,
        f"Updated requirement {requirement['codeId']}", requirement_id,
    )
    return Requirement.model_validate(requirement)


@requirement_router.delete("/{requirement_id}", status_code=204)
def delete_requirement(
    requirement_id: int,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    requirement = require(repo, REQUIREMENTS, requirement_id, "Requirement")
    removed_tasks = repo.delete_where(TASKS, requirementId=requirement_id)
    repo.delete(REQUIREMENTS, requirement_id)
    activities.record(
        requirement["projectId"], ActivityType.DELETED_REQUIREMENT,
        f"Deleted requirement {requirement['codeId']} and {removed_tasks} task(s)",
    )
    return Response(status_code=204)


@requirement_router.post(
    "/{requirement_id}/generate-acceptance-criteria", response_model=GeneratedCriteriaResponse
)
def generate_acceptance_criteria(
    requirement_id: int,
    provider: LLMProvider = Depends(provider_param),
    repo: BaseRepository = Depends(get_repository),
    generation: GenerationService = Depends(get_generation_service),
    activities: ActivityService = Depends(get_activity_service),
):
    requirement = require(repo, REQUIREMENTS, requirement_id, "Requirement")
    project = require(repo, PROJECTS, requirement["projectId"], "Project")

    result = generation.generate_acceptance_criteria(
        project_name=project["name"],
        project_description=project.get("description", ""),
        requirement_text=requirement_text(requirement),
        provider=provider,
    )
    criteria = [c.model_dump(mode="json", by_alias=True) for c in result.items]
    updated = repo.update(REQUIREMENTS, requirement_id, {"acceptanceCriteria": criteria})
    activities.record(
        project["id"], ActivityType.GENERATED_ACCEPTANCE_CRITERIA,
        f"Generated {len(criteria)} acceptance criteria for {requirement['codeId']}", requirement_id,
    )
    return GeneratedCriteriaResponse(
        requirement=Requirement.model_validate(updated),
        acceptance_criteria=result.items,
        succeeded=result.succeeded,
        strategy=result.strategy,
    )


# ── Implementation tasks ─────────────────────────────────

@project_router.get("/{project_id}/tasks", response_model=list[ImplementationTask])
def list_project_tasks(project_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, PROJECTS, project_id, "Project")
    tasks = []
    for requirement in repo.list(REQUIREMENTS, projectId=project_id):
        tasks.extend(repo.list(TASKS, requirementId=requirement["id"]))
    return [ImplementationTask.model_validate(t) for t in tasks]


@requirement_router.get("/{requirement_id}/tasks", response_model=list[ImplementationTask])
def list_tasks(requirement_id: int, repo: BaseRepository = Depends(get_repository)):
    require(repo, REQUIREMENTS, requirement_id, "Requirement")
    return [ImplementationTask.model_validate(t) for t in repo.list(TASKS, requirementId=requirement_id)]


@requirement_router.post("/{requirement_id}/tasks", response_model=ImplementationTask, status_code=201)
def create_task(
    requirement_id: int,
    body: TaskCreate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    requirement = require(repo, REQUIREMENTS, requirement_id, "Requirement")
    doc = body.model_dump(mode="json", by_alias=True)
    doc["requirementId"] = requirement_id
    task = repo.create(TASKS, doc)
    activities.record(
        requirement["projectId"], ActivityType.CREATED_TASK,
        f"Created implementation task \"{task['title']}\"", task["id"],
    )
    return ImplementationTask.model_validate(task)


@requirement_router.post("/{requirement_id}/generate-tasks", response_model=GeneratedTasksResponse)
def generate_tasks(
    requirement_id: int,
    provider: LLMProvider = Depends(provider_param),
    repo: BaseRepository = Depends(get_repository),
    generation: GenerationService = Depends(get_generation_service),
    activities: ActivityService = Depends(get_activity_service),
):
    requirement = require(repo, REQUIREMENTS, requirement_id, "Requirement")
    project = require(repo, PROJECTS, requirement["projectId"], "Project")
    if not project.get("sourceSystem") or not project.get("targetSystem"):
        raise HTTPException(
            status_code=400,
            detail=(
                "Source or target system not defined for this project. "
                "Please update the project with these details first."
            ),
        )

    result = generation.generate_implementation_tasks(
        project_name=project["name"],
        source_system=project["sourceSystem"],
        target_system=project["targetSystem"],
        requirement_text=requirement_text(requirement),
        acceptance_criteria=requirement.get("acceptanceCriteria", []),
        provider=provider,
    )

    created = []
    for record in result.items:
        doc = TaskCreate.model_validate(record.model_dump(by_alias=True)).model_dump(
            mode="json", by_alias=True
        )
        doc["requirementId"] = requirement_id
        created.append(repo.create(TASKS, doc))

    logger.info(f"Stored {len(created)} tasks for requirement {requirement_id} ({result.strategy.value})")
    activities.record(
        project["id"], ActivityType.GENERATED_TASKS,
        f"Generated {len(created)} implementation tasks for {requirement['codeId']}", requirement_id,
    )
    return GeneratedTasksResponse(
        requirement_id=requirement_id,
        tasks=[ImplementationTask.model_validate(t) for t in created],
        succeeded=result.succeeded,
        strategy=result.strategy,
    )


@task_router.get("/{task_id}", response_model=ImplementationTask)
def get_task(task_id: int, repo: BaseRepository = Depends(get_repository)):
    return ImplementationTask.model_validate(require(repo, TASKS, task_id, "Task"))


@task_router.patch("/{task_id}", response_model=ImplementationTask)
def update_task(
    task_id: int,
    body: TaskUpdate,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    task = require(repo, TASKS, task_id, "Task")
    changes = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    updated = repo.update(TASKS, task_id, changes)
    requirement = repo.get(REQUIREMENTS, task["requirementId"])
    if requirement:
        activities.record(
            requirement["projectId"], ActivityType.UPDATED_TASK,
            f"Updated implementation task \"{updated['title']}\"", task_id,
        )
    return ImplementationTask.model_validate(updated)


@task_router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    repo: BaseRepository = Depends(get_repository),
    activities: ActivityService = Depends(get_activity_service),
):
    task = require(repo, TASKS, task_id, "Task")
    repo.delete(TASKS, task_id)
    requirement = repo.get(REQUIREMENTS, task["requirementId"])
    if requirement:
        activities.record(
            requirement["projectId"], ActivityType.DELETED_TASK,
            f"Deleted implementation task \"{task['title']}\"",
        )
    return Response(status_code=204)
