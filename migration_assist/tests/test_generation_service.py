"""
Tests: generation service (prompt → model → extractor).

Run with:
    pytest migration_assist/tests/test_generation_service.py -v
"""

import json

import pytest

from migration_assist.config import Settings
from migration_assist.models.enums import ParseStrategy
from migration_assist.services.generation_service import (
    GenerationService,
    format_acceptance_criteria,
)
from migration_assist.services.llm_service import LLMServiceError


class StubLLM:
    """Stands in for LLMClient; replies are consumed in order (the last one repeats)."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def generate(self, system_prompt, user_prompt, provider=None, temperature=None, max_tokens=None):
        self.calls.append({
            "system": system_prompt,
            "user": user_prompt,
            "provider": provider,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _service(llm, **overrides) -> GenerationService:
    return GenerationService(llm, Settings(_env_file=None, **overrides))


class TestGenerateRequirements:
    def test_prompt_rendered_and_sampling_applied(self):
        llm = StubLLM(json.dumps([{"title": "Case Routing", "description": "Route cases"}]))
        service = _service(llm, requirements_temperature=0.1, requirements_max_tokens=999)

        result = service.generate_requirements(
            "Cases are routed by hand today.", "CRM Migration", "notes.txt",
            content_type="workflow", min_requirements=3, provider="groq",
        )

        assert result.succeeded is True
        call = llm.calls[0]
        assert "CRM Migration" in call["user"]
        assert "Cases are routed by hand today." in call["user"]
        assert "at least 3 requirements" in call["user"]
        assert "business workflows" in call["user"]
        assert "{" + "context}" not in call["user"]
        assert call["temperature"] == 0.1
        assert call["max_tokens"] == 999
        assert call["provider"] == "groq"

    def test_document_chunks_merged_without_duplicates(self):
        llm = StubLLM(
            json.dumps([{"title": "Case Routing"}, {"title": "Escalation"}]),
            json.dumps([{"title": "case  routing"}, {"title": "Reporting"}]),
        )
        service = _service(llm, chunk_size=100, chunk_overlap=10)
        text = "A" * 90 + "\n\n" + "B" * 90

        result = service.generate_requirements_for_document(text, "CRM", "notes.txt")

        assert len(llm.calls) == 2
        assert "Chunk 1 of 2" in llm.calls[0]["user"]
        assert [r.title for r in result.items] == ["Case Routing", "Escalation", "Reporting"]
        assert result.succeeded is True
        assert result.strategy == ParseStrategy.STRICT

    def test_document_with_no_parsable_chunk(self):
        service = _service(StubLLM("Sorry, I can't."))
        result = service.generate_requirements_for_document("Some text", "CRM", "notes.txt")
        assert result.succeeded is False
        assert result.strategy == ParseStrategy.FALLBACK
        assert result.items == []

    def test_llm_errors_propagate(self):
        service = _service(StubLLM(LLMServiceError("down")))
        with pytest.raises(LLMServiceError):
            service.generate_requirements("text", "CRM", "notes.txt")


class TestGenerateAcceptanceCriteria:
    def test_criteria_generated(self):
        llm = StubLLM(json.dumps([
            {"title": "Routed", "description": "Given a case When created Then routed"}
        ]))
        result = _service(llm).generate_acceptance_criteria("CRM", "Move to Salesforce", "Route cases")

        assert result.items[0].status == "pending"
        assert "Route cases" in llm.calls[0]["user"]
        assert llm.calls[0]["temperature"] == 0.4


class TestGenerateImplementationTasks:
    def test_target_system_in_both_prompts(self):
        llm = StubLLM(json.dumps([{"title": "Build queue"}]))
        result = _service(llm).generate_implementation_tasks(
            "CRM", "Siebel", "Salesforce", "Route cases",
            acceptance_criteria=[{"description": "Given a case Then it is routed"}],
        )

        call = llm.calls[0]
        assert "Salesforce technical architect" in call["system"]
        assert "Source System: Siebel" in call["user"]
        assert "Acceptance Criterion 1: Given a case Then it is routed" in call["user"]
        assert result.items[0].system == "Salesforce"

    def test_fallback_task_when_unparseable(self):
        result = _service(StubLLM("I cannot process this request.")).generate_implementation_tasks(
            "CRM", "Siebel", "Salesforce", "Route cases to queues",
        )
        assert result.succeeded is False
        assert result.items[0].description.startswith("Route cases to queues")


class TestGenerateWorkflow:
    def test_requires_requirements(self):
        with pytest.raises(ValueError):
            _service(StubLLM("")).generate_workflow("CRM", [])

    def test_requirements_serialized_into_prompt(self):
        llm = StubLLM("no json")
        result = _service(llm).generate_workflow(
            "CRM", [{"id": 1, "title": "Case Routing", "description": "Route cases"}]
        )

        assert '"title": "Case Routing"' in llm.calls[0]["user"]
        assert result.succeeded is False
        assert result.items[0].nodes[1].data.label == "Implement Case Routing"


class TestFormatAcceptanceCriteria:
    def test_empty(self):
        assert format_acceptance_criteria([]) == "None provided."

    def test_numbered(self):
        text = format_acceptance_criteria([{"description": "one"}, {"description": "two"}])
        assert text == "Acceptance Criterion 1: one\n\nAcceptance Criterion 2: two"
