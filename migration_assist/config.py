"""
Application configuration using Pydantic Settings.
All environment-specific values are centralized here.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── App ──────────────────────────────────────────────
    app_name: str = "Migration Assist"
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # ── LLM providers ────────────────────────────────────
    default_llm_provider: str = "claude"  # "claude" | "gemini" | "groq"
    anthropic_api_key: str = ""
    google_api_key: str = ""
    groq_api_key: str = ""
    claude_model: str = "claude-3-7-sonnet-20250219"
    gemini_model: str = "gemini-1.5-pro"
    groq_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    llm_empty_retries: int = 1

    # ── Generation tuning ────────────────────────────────
    requirements_temperature: float = 0.2
    requirements_max_tokens: int = 4000
    acceptance_criteria_temperature: float = 0.4
    acceptance_criteria_max_tokens: int = 2000
    tasks_temperature: float = 0.7
    tasks_max_tokens: int = 3000
    workflow_temperature: float = 0.3
    workflow_max_tokens: int = 4000
    min_requirements: int = 5

    # ── Document chunking ────────────────────────────────
    chunk_size: int = 4000
    chunk_overlap: int = 500

    # ── Storage ──────────────────────────────────────────
    storage_backend: str = "memory"  # "memory" | "mongo"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "migration_assist"

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings (singleton)."""
    return Settings()
