"""
Migration Assist — Main Entry Point

Run as an API server:
    python -m migration_assist.main --serve
    # or: uvicorn migration_assist.api:app --reload --port 8000

Extract requirements from a text file on the command line:
    python -m migration_assist.main path/to/notes.txt [--provider groq]
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from migration_assist.config import get_settings
from migration_assist.models.schemas import ExtractionResult
from migration_assist.services.generation_service import GenerationService
from migration_assist.services.llm_service import LLMClient
from migration_assist.utils.logger import setup_logging


def run(file_path: str, provider: Optional[str] = None) -> ExtractionResult:
    """Extract requirements from one text document and log a summary."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    path = Path(file_path)
    logger.info("=" * 60)
    logger.info("  MIGRATION ASSIST — REQUIREMENT EXTRACTION")
    logger.info(f"  File: {path.name} | Started: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    generation = GenerationService(LLMClient(settings), settings)
    result = generation.generate_requirements_for_document(
        path.read_text(encoding="utf-8"),
        project_name=path.stem,
        file_name=path.name,
        provider=provider,
    )
    _print_summary(result)
    return result


def _print_summary(result: ExtractionResult) -> None:
    logger = logging.getLogger(__name__)
    logger.info("-" * 60)
    logger.info(f"  Parsed:        {result.succeeded} ({result.strategy.value})")
    logger.info(f"  Requirements:  {len(result.items)}")
    logger.info("-" * 60)
    for i, requirement in enumerate(result.items, start=1):
        logger.info(f"  {i:>3}. [{requirement.priority}/{requirement.category}] {requirement.title}")


def serve(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the FastAPI server."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run("migration_assist.api:app", host=host, port=port, reload=settings.debug)


def main(argv: list[str]) -> None:
    if "--serve" in argv or not argv:
        serve()
        return
    provider = None
    if "--provider" in argv:
        index = argv.index("--provider")
        provider = argv[index + 1] if index + 1 < len(argv) else None
        argv = argv[:index] + argv[index + 2:]
    if not argv:
        raise SystemExit("usage: python -m migration_assist [--serve | FILE [--provider NAME]]")
    run(argv[0], provider)


if __name__ == "__main__":
    main(sys.argv[1:])
