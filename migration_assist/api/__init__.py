"""
FastAPI application factory and API package.

Run with:
    uvicorn migration_assist.api:app --reload --port 8000

Or via main.py:
    python -m migration_assist.main --serve
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from migration_assist.config import Settings, get_settings
from migration_assist.persistence.repository import BaseRepository, build_repository
from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService
from migration_assist.services.llm_service import (
    LLMClient,
    LLMConfigurationError,
    LLMServiceError,
)

# Route modules attach their handlers to project_router on import
from migration_assist.api.routes import (
    activity_router,
    health_router,
    input_data_router,
    project_router,
)
from migration_assist.api.requirement_routes import requirement_router, task_router
from migration_assist.api.workflow_routes import workflow_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[BaseRepository] = None,
    llm: Optional[LLMClient] = None,
) -> FastAPI:
    """Application factory — create and configure the FastAPI instance."""
    settings = settings or get_settings()

    application = FastAPI(
        title="Migration Assist API",
        description="Requirements, implementation tasks and workflows for system migrations",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Services shared by every request
    application.state.settings = settings
    application.state.repository = repository or build_repository(settings)
    application.state.llm = llm or LLMClient(settings)
    application.state.generation = GenerationService(application.state.llm, settings)
    application.state.activities = ActivityService(application.state.repository)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(health_router, tags=["Health"])
    application.include_router(project_router, prefix="/api/projects", tags=["Projects"])
    application.include_router(input_data_router, prefix="/api/input-data", tags=["Input data"])
    application.include_router(requirement_router, prefix="/api/requirements", tags=["Requirements"])
    application.include_router(task_router, prefix="/api/tasks", tags=["Tasks"])
    application.include_router(workflow_router, prefix="/api/workflows", tags=["Workflows"])
    application.include_router(activity_router, prefix="/api/activities", tags=["Activities"])

    @application.exception_handler(LLMConfigurationError)
    async def llm_configuration_error(request: Request, exc: LLMConfigurationError):
        logger.error(f"[API] {request.url.path}: LLM not configured: {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @application.exception_handler(LLMServiceError)
    async def llm_service_error(request: Request, exc: LLMServiceError):
        logger.error(f"[API] {request.url.path}: LLM call failed: {exc}")
        return JSONResponse(status_code=502, content={"detail": f"LLM request failed: {exc}"})

    @application.on_event("startup")
    async def startup():
        logger.info(f"Starting {settings.app_name} API")
        logger.info(
            f"Default LLM provider: {settings.default_llm_provider} | "
            f"storage: {settings.storage_backend}"
        )

    @application.on_event("shutdown")
    async def shutdown():
        application.state.repository.close()

    return application


# Module-level instance for `uvicorn migration_assist.api:app`
app = create_app()
