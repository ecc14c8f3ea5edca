"""
Generation Service — prompt → model → extractor for every generated record.

Each operation renders its template, calls the injected ``LLMClient`` with
the operation's sampling settings, and hands the reply to the extraction
service. LLM errors propagate; parse failures never do (they surface as
``ExtractionResult.succeeded == False``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from migration_assist.config import Settings
from migration_assist.models.enums import LLMProvider, ParseStrategy
from migration_assist.models.schemas import (
    AcceptanceCriterionRecord,
    ExtractionResult,
    RequirementRecord,
)
from migration_assist.prompts import render_prompt
from migration_assist.prompts import templates
from migration_assist.services import extraction_service
from migration_assist.services.llm_service import LLMClient
from migration_assist.services.parsing_service import ParsingService
from migration_assist.utils.text import normalize_whitespace, truncate

logger = logging.getLogger(__name__)


class GenerationService:
    """Requirement, acceptance-criteria, task and workflow generation."""

    def __init__(self, llm: LLMClient, settings: Settings):
        self.llm = llm
        self.settings = settings

    # ── Requirements ─────────────────────────────────────

    def generate_requirements(
        self,
        context: str,
        project_name: str,
        file_name: str,
        content_type: str = "general",
        min_requirements: Optional[int] = None,
        provider: LLMProvider | str | None = None,
        chunk_index: int = 1,
        chunk_count: int = 1,
    ) -> ExtractionResult[RequirementRecord]:
        """Extract requirements from one piece of source text."""
        logger.info(
            f"[GEN] Generating requirements for {file_name} "
            f"(content type: {content_type}, chunk {chunk_index}/{chunk_count})"
        )
        chunk_note = ""
        if chunk_count > 1:
            chunk_note = render_prompt(
                templates.CHUNK_NOTE, chunk_index=chunk_index, chunk_count=chunk_count
            )
        prompt = render_prompt(
            templates.REQUIREMENTS_GENERATION_PROMPT,
            project_name=project_name,
            content_type=content_type,
            file_name=file_name,
            chunk_note=chunk_note,
            content_focus=templates.CONTENT_TYPE_FOCUS.get(
                content_type, templates.CONTENT_TYPE_FOCUS["general"]
            ),
            context=context,
            min_requirements=min_requirements or self.settings.min_requirements,
        )
        raw = self.llm.generate(
            templates.REQUIREMENTS_SYSTEM_PROMPT,
            prompt,
            provider=provider,
            temperature=self.settings.requirements_temperature,
            max_tokens=self.settings.requirements_max_tokens,
        )
        return extraction_service.extract_requirements(raw)

    def generate_requirements_for_document(
        self,
        text: str,
        project_name: str,
        file_name: str,
        content_type: str = "general",
        min_requirements: Optional[int] = None,
        provider: LLMProvider | str | None = None,
    ) -> ExtractionResult[RequirementRecord]:
        """
        Chunk a document, extract per chunk and merge in document order.
        Requirements repeated across overlapping chunks are kept once.
        """
        chunks = ParsingService.chunk_text(
            text, self.settings.chunk_size, self.settings.chunk_overlap
        )
        logger.info(f"[GEN] {file_name}: {len(chunks)} chunk(s) to process")

        merged: list[RequirementRecord] = []
        seen: set[str] = set()
        succeeded = False
        strategies: list[ParseStrategy] = []
        for i, chunk in enumerate(chunks, start=1):
            result = self.generate_requirements(
                chunk,
                project_name,
                file_name,
                content_type=content_type,
                min_requirements=min_requirements,
                provider=provider,
                chunk_index=i,
                chunk_count=len(chunks),
            )
            succeeded = succeeded or result.succeeded
            strategies.append(result.strategy)
            for record in result.items:
                key = normalize_whitespace(record.title)
                if key in seen:
                    logger.debug(f"[GEN] Skipping duplicate requirement {record.title!r}")
                    continue
                seen.add(key)
                merged.append(record)

        logger.info(
            f"[GEN] {file_name}: {len(merged)} requirements "
            f"({sum(1 for s in strategies if s is not ParseStrategy.FALLBACK)}/{len(chunks)} chunks parsed)"
        )
        return ExtractionResult[RequirementRecord](
            items=merged,
            succeeded=succeeded,
            strategy=_overall_strategy(strategies),
        )

    # ── Acceptance criteria ──────────────────────────────

    def generate_acceptance_criteria(
        self,
        project_name: str,
        project_description: str,
        requirement_text: str,
        provider: LLMProvider | str | None = None,
    ) -> ExtractionResult[AcceptanceCriterionRecord]:
        logger.info(f"[GEN] Generating acceptance criteria for: {truncate(requirement_text, 100)}")
        prompt = render_prompt(
            templates.ACCEPTANCE_CRITERIA_PROMPT,
            project_name=project_name,
            project_description=project_description or "",
            requirement_text=requirement_text,
        )
        raw = self.llm.generate(
            templates.ACCEPTANCE_CRITERIA_SYSTEM_PROMPT,
            prompt,
            provider=provider,
            temperature=self.settings.acceptance_criteria_temperature,
            max_tokens=self.settings.acceptance_criteria_max_tokens,
        )
        return extraction_service.extract_acceptance_criteria(raw, requirement_text)

    # ── Implementation tasks ─────────────────────────────

    def generate_implementation_tasks(
        self,
        project_name: str,
        source_system: str,
        target_system: str,
        requirement_text: str,
        acceptance_criteria: Iterable[Any] = (),
        provider: LLMProvider | str | None = None,
    ) -> ExtractionResult:
        logger.info(
            f"[GEN] Generating {target_system} implementation tasks for: "
            f"{truncate(requirement_text, 100)}"
        )
        values = {
            "project_name": project_name,
            "source_system": source_system,
            "target_system": target_system,
            "requirement_text": requirement_text,
            "acceptance_criteria": format_acceptance_criteria(acceptance_criteria),
        }
        raw = self.llm.generate(
            render_prompt(templates.IMPLEMENTATION_TASKS_SYSTEM_PROMPT, values),
            render_prompt(templates.IMPLEMENTATION_TASKS_PROMPT, values),
            provider=provider,
            temperature=self.settings.tasks_temperature,
            max_tokens=self.settings.tasks_max_tokens,
        )
        return extraction_service.extract_implementation_tasks(raw, requirement_text, target_system)

    # ── Workflows ────────────────────────────────────────

    def generate_workflow(
        self,
        project_name: str,
        requirements: list[dict[str, Any]],
        provider: LLMProvider | str | None = None,
    ) -> ExtractionResult:
        """Design one workflow covering *requirements* (dicts with id/title/description)."""
        if not requirements:
            raise ValueError("At least one requirement is needed to design a workflow")
        logger.info(f"[GEN] Designing workflow for {len(requirements)} requirement(s)")
        prompt = render_prompt(
            templates.WORKFLOW_DESIGN_PROMPT,
            project_name=project_name,
            requirements=json.dumps(requirements, indent=2, default=str),
        )
        raw = self.llm.generate(
            templates.WORKFLOW_SYSTEM_PROMPT,
            prompt,
            provider=provider,
            temperature=self.settings.workflow_temperature,
            max_tokens=self.settings.workflow_max_tokens,
        )
        return extraction_service.extract_workflow(raw, requirements[0].get("title", ""))


def format_acceptance_criteria(criteria: Iterable[Any]) -> str:
    """Number acceptance criteria for the task prompt."""
    lines = []
    for i, criterion in enumerate(criteria, start=1):
        if isinstance(criterion, dict):
            description = criterion.get("description", "")
        else:
            description = getattr(criterion, "description", str(criterion))
        lines.append(f"Acceptance Criterion {i}: {description}")
    return "\n\n".join(lines) if lines else "None provided."


def _overall_strategy(strategies: list[ParseStrategy]) -> ParseStrategy:
    """Weakest successful strategy across chunks; fallback only if every chunk fell back."""
    parsed = [s for s in strategies if s is not ParseStrategy.FALLBACK]
    if not parsed:
        return ParseStrategy.FALLBACK
    return ParseStrategy.PATTERN if ParseStrategy.PATTERN in parsed else ParseStrategy.STRICT
