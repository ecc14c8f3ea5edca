"""
FastAPI dependencies — services owned by the application factory.

``create_app`` builds the repository, LLM client and services once and
parks them on ``app.state``; handlers receive them through these functions.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, Request

from migration_assist.models.enums import LLMProvider
from migration_assist.persistence.repository import BaseRepository
from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService
from migration_assist.services.llm_service import resolve_provider


def get_repository(request: Request) -> BaseRepository:
    return request.app.state.repository


def get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation


def get_activity_service(request: Request) -> ActivityService:
    return request.app.state.activities


def require(repository: BaseRepository, collection: str, entity_id: int, label: str) -> dict[str, Any]:
    """Fetch a document or raise 404."""
    doc = repository.get(collection, entity_id)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"{label} {entity_id} not found")
    return doc


def provider_param(request: Request, provider: Optional[str] = None) -> LLMProvider:
    """``?provider=claude|gemini|groq``; defaults to the configured provider."""
    try:
        return resolve_provider(provider, request.app.state.settings.default_llm_provider)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
