"""Services — LLM client, extraction, generation, parsing, activity feed."""

from migration_assist.services.activity_service import ActivityService
from migration_assist.services.generation_service import GenerationService
from migration_assist.services.llm_service import (
    LLMClient,
    LLMConfigurationError,
    LLMServiceError,
)
from migration_assist.services.parsing_service import ParsingService

__all__ = [
    "ActivityService",
    "GenerationService",
    "LLMClient",
    "LLMConfigurationError",
    "LLMServiceError",
    "ParsingService",
]
