"""
Tests: LLM structured-output extraction.

Run with:
    pytest migration_assist/tests/test_extraction_service.py -v
"""

import json

import pytest

from migration_assist.models.enums import ParseStrategy
from migration_assist.services import extraction_service as ex


REQUIREMENT_TEXT = (
    "The system must route incoming support cases to the correct queue based on "
    "product line, customer tier and language, and escalate cases breaching SLA."
)


def _requirements_json() -> str:
    return json.dumps([
        {
            "title": "Case Routing",
            "description": "Route cases by product line, tier and language.",
            "category": "functional",
            "priority": "high",
        },
        {
            "title": "Audit Logging",
            "description": "Every routing decision is logged.",
            "category": "security",
            "priority": "medium",
        },
    ])


def _task_json() -> str:
    return json.dumps([
        {
            "title": "Configure assignment rules",
            "description": "Create case assignment rules for each queue.",
            "system": "Salesforce",
            "taskType": "configuration",
            "complexity": "moderate",
            "estimatedHours": 6,
            "priority": "high",
            "implementationSteps": [
                {"stepNumber": 1, "stepDescription": "Create queues", "relevantDocumentationLinks": []},
                {"stepDescription": "Create assignment rule entries"},
            ],
        }
    ])


class TestFenceStripping:
    def test_json_fence_removed(self):
        assert ex.strip_code_fences('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_plain_fence_removed(self):
        assert ex.strip_code_fences('```\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_no_fence_is_noop(self):
        assert ex.strip_code_fences('  [{"a": 1}]  ') == '[{"a": 1}]'

    def test_stripping_twice_is_stable(self):
        once = ex.strip_code_fences('```json\n[{"a": 1}]\n```')
        assert ex.strip_code_fences(once) == once


class TestBalancedSpans:
    def test_first_object_array_found_in_prose(self):
        text = 'Here you go:\n[{"title": "A"}]\nHope this helps!'
        assert list(ex.iter_balanced_spans(text)) == ['[{"title": "A"}]']

    def test_brackets_inside_strings_do_not_break_matching(self):
        text = 'Result: [{"title": "Use ] and [ and } in text"}] done'
        spans = list(ex.iter_balanced_spans(text))
        assert json.loads(spans[0]) == [{"title": "Use ] and [ and } in text"}]

    def test_arrays_of_scalars_are_skipped(self):
        text = 'Tags [1, 2, 3] then [{"title": "A"}]'
        assert list(ex.iter_balanced_spans(text)) == ['[{"title": "A"}]']

    def test_objects_only_when_accepted(self):
        text = 'Answer: {"title": "A"}'
        assert list(ex.iter_balanced_spans(text)) == []
        assert list(ex.iter_balanced_spans(text, accept_object=True)) == ['{"title": "A"}']

    def test_unbalanced_span_is_not_yielded(self):
        assert list(ex.iter_balanced_spans('[{"title": "truncated')) == []

    def test_unterminated_array_keeps_complete_objects(self):
        text = '[{"title": "A"}, {"title": "B"}, {"title": "trunc'
        assert list(ex.iter_balanced_spans(text)) == ['[{"title": "A"},{"title": "B"}]']


class TestExtractRequirements:
    def test_valid_array_parsed_strictly(self):
        result = ex.extract_requirements(_requirements_json())
        assert result.succeeded is True
        assert result.strategy == ParseStrategy.STRICT
        assert [r.title for r in result.items] == ["Case Routing", "Audit Logging"]

    def test_four_fields_kept_verbatim(self):
        description = " ".join(["word"] * 150)
        raw = json.dumps([{
            "title": "Case Routing",
            "description": description,
            "category": "functional",
            "priority": "high",
        }])
        result = ex.extract_requirements(raw)

        assert len(result.items) == 1
        record = result.items[0]
        assert record.title == "Case Routing"
        assert record.description == description
        assert record.category == "functional"
        assert record.priority == "high"

    def test_fenced_input_matches_unfenced(self):
        raw = _requirements_json()
        fenced = ex.extract_requirements(f"```json\n{raw}\n```")
        plain = ex.extract_requirements(raw)
        assert fenced.model_dump() == plain.model_dump()

    def test_array_recovered_from_prose(self):
        raw = 'Here you go:\n[{"title":"A","description":"..."}]\nHope this helps!'
        result = ex.extract_requirements(raw)
        assert result.succeeded is True
        assert result.strategy == ParseStrategy.PATTERN
        assert result.items[0].title == "A"

    def test_wrapper_object_is_unwrapped(self):
        raw = json.dumps({"requirements": json.loads(_requirements_json())})
        result = ex.extract_requirements(raw)
        assert result.succeeded is True
        assert len(result.items) == 2

    def test_unparseable_output_yields_no_requirements(self):
        result = ex.extract_requirements("not json at all")
        assert result.succeeded is False
        assert result.strategy == ParseStrategy.FALLBACK
        assert result.items == []

    def test_none_input_does_not_raise(self):
        result = ex.extract_requirements(None)
        assert result.succeeded is False

    def test_deeply_nested_input_does_not_raise(self):
        result = ex.extract_requirements("[" * 100000 + "]" * 100000)
        assert result.succeeded is False
        assert result.strategy == ParseStrategy.FALLBACK
        assert result.items == []

    def test_truncated_array_keeps_complete_requirements(self):
        raw = '[{"title": "A"}, {"title": "B"}, {"title": "C", "description": "cut of'
        result = ex.extract_requirements(raw)
        assert result.succeeded is True
        assert [r.title for r in result.items] == ["A", "B"]

    def test_missing_fields_defaulted(self):
        raw = json.dumps([{"text": "Users can export their case history as CSV files from the portal"}])
        record = ex.extract_requirements(raw).items[0]
        assert record.description.startswith("Users can export")
        assert record.title == "Users can export their case history as CSV…"
        assert record.category == "functional"
        assert record.priority == "medium"

    def test_known_spellings_mapped(self):
        raw = json.dumps([{"title": "A", "category": "Non Functional", "priority": "HIGH"}])
        record = ex.extract_requirements(raw).items[0]
        assert record.category == "non-functional"
        assert record.priority == "high"

    def test_unknown_category_passed_through(self):
        raw = json.dumps([{"title": "A", "category": "usability"}])
        record = ex.extract_requirements(raw).items[0]
        assert record.category == "usability"

    def test_non_object_elements_skipped(self):
        raw = json.dumps([{"title": "A"}, "stray", {"title": "B"}])
        result = ex.extract_requirements(raw)
        assert [r.title for r in result.items] == ["A", "B"]

    def test_extra_keys_preserved(self):
        raw = json.dumps([{"title": "A", "source": "Section 2.1"}])
        record = ex.extract_requirements(raw).items[0]
        assert record.model_extra["source"] == "Section 2.1"


class TestExtractAcceptanceCriteria:
    def test_status_initialized_to_pending(self):
        raw = json.dumps([{
            "title": "Case reaches queue",
            "description": "Given a case\nWhen it is created\nThen it is routed",
            "type": "functional",
        }])
        result = ex.extract_acceptance_criteria(raw, REQUIREMENT_TEXT)
        assert result.succeeded is True
        assert result.items[0].status == "pending"

    def test_status_from_model_is_reset_to_pending(self):
        raw = json.dumps([
            {"title": "Approved already", "description": "Given x\nThen y", "status": "approved"},
        ])
        assert ex.extract_acceptance_criteria(raw, REQUIREMENT_TEXT).items[0].status == "pending"

    def test_single_object_accepted(self):
        raw = '{"title": "Only one", "description": "Given x When y Then z"}'
        result = ex.extract_acceptance_criteria(raw, REQUIREMENT_TEXT)
        assert result.succeeded is True
        assert len(result.items) == 1

    def test_gherkin_parts_assembled(self):
        raw = json.dumps([{
            "scenario": "Escalation",
            "given": "a case older than the SLA",
            "when": "the SLA job runs",
            "then": "the case is escalated",
        }])
        record = ex.extract_acceptance_criteria(raw, REQUIREMENT_TEXT).items[0]
        assert record.title == "Escalation"
        assert record.description.splitlines() == [
            "Scenario: Escalation",
            "Given a case older than the SLA",
            "When the SLA job runs",
            "Then the case is escalated",
        ]

    def test_fallback_on_refusal(self):
        result = ex.extract_acceptance_criteria("I cannot help with that.", REQUIREMENT_TEXT)
        assert result.succeeded is False
        assert len(result.items) == 1
        assert REQUIREMENT_TEXT[:100] in result.items[0].description
        assert result.items[0].status == "pending"


class TestExtractImplementationTasks:
    def test_valid_tasks_parsed(self):
        result = ex.extract_implementation_tasks(_task_json(), REQUIREMENT_TEXT, "Salesforce")
        assert result.succeeded is True
        task = result.items[0]
        assert task.title == "Configure assignment rules"
        assert task.complexity == "medium"
        assert task.estimated_hours == 6

    def test_missing_step_number_uses_position(self):
        task = ex.extract_implementation_tasks(_task_json(), REQUIREMENT_TEXT).items[0]
        assert [s.step_number for s in task.implementation_steps] == [1, 2]
        assert task.implementation_steps[1].relevant_documentation_links == []

    def test_missing_steps_become_empty_list(self):
        raw = json.dumps([{"title": "No steps", "description": "Nothing detailed"}])
        task = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT).items[0]
        assert task.implementation_steps == []

    def test_fallback_task_built_from_requirement(self):
        result = ex.extract_implementation_tasks(
            "I cannot process this request.", REQUIREMENT_TEXT, "Salesforce"
        )
        assert result.succeeded is False
        assert len(result.items) == 1
        fallback = result.items[0]
        assert fallback.description.startswith(REQUIREMENT_TEXT[:100])
        assert fallback.system == "Salesforce"
        assert fallback.estimated_hours == 8

    def test_step_arrays_are_not_mistaken_for_tasks(self):
        raw = "Sure, here are the tasks:\n" + _task_json() + "\nLet me know!"
        result = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT)
        assert result.strategy == ParseStrategy.PATTERN
        assert [t.title for t in result.items] == ["Configure assignment rules"]

    def test_output_cut_at_token_limit_keeps_complete_tasks(self):
        tasks = [
            {
                "title": title,
                "description": f"Task {title} in the target org, end to end.",
                "implementationSteps": [{"stepNumber": 1, "stepDescription": "Open Setup"}],
            }
            for title in ("A", "B", "C")
        ]
        raw = json.dumps(tasks)[:-20]

        result = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT, "Salesforce")

        assert result.succeeded is True
        assert result.strategy == ParseStrategy.PATTERN
        assert [t.title for t in result.items] == ["A", "B"]
        assert result.items[1].implementation_steps[0].step_description == "Open Setup"

    def test_relevant_documents_folded_into_links(self):
        raw = json.dumps([{
            "title": "Build flow",
            "relevantDocuments": [
                {"documentTitle": "Flow Builder", "link": "https://help.example.com/flow"}
            ],
        }])
        task = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT).items[0]
        assert task.overall_documentation_links == ["https://help.example.com/flow"]
        assert task.sf_documentation_links[0].title == "Flow Builder"
        assert "relevantDocuments" not in (task.model_extra or {})

    @pytest.mark.parametrize("raw_value, expected", [
        ("simple", "low"),
        ("Moderate", "medium"),
        ("complex", "high"),
        ("high", "high"),
    ])
    def test_complexity_aliases(self, raw_value, expected):
        raw = json.dumps([{"title": "T", "complexity": raw_value}])
        task = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT).items[0]
        assert task.complexity == expected

    def test_hours_parsed_from_text(self):
        raw = json.dumps([{"title": "T", "estimatedHours": "about 12 hours"}])
        task = ex.extract_implementation_tasks(raw, REQUIREMENT_TEXT).items[0]
        assert task.estimated_hours == 12.0


class TestNormalizerIdempotence:
    def test_task_normalizer(self):
        record = json.loads(_task_json())[0]
        record["relevantDocuments"] = [{"documentTitle": "Doc", "link": "https://example.com"}]
        once = ex.normalize_implementation_task(record, 0, "Salesforce")
        twice = ex.normalize_implementation_task(once, 0, "Salesforce")
        assert twice == once

    def test_already_normalized_step_unchanged(self):
        step = {"stepNumber": 3, "stepDescription": "Deploy", "relevantDocumentationLinks": []}
        record = {"title": "T", "implementationSteps": [step]}
        normalized = ex.normalize_implementation_task(record, 0)
        assert normalized["implementationSteps"] == [step]

    def test_requirement_normalizer(self):
        once = ex.normalize_requirement({"text": "Export data nightly"}, 0)
        assert ex.normalize_requirement(once, 0) == once

    def test_criterion_normalizer(self):
        once = ex.normalize_acceptance_criterion({"description": "Scenario: X\nGiven y"}, 0)
        assert once["title"] == "X"
        assert ex.normalize_acceptance_criterion(once, 0) == once


class TestExtractWorkflow:
    def _workflow(self) -> dict:
        return {
            "nodes": [
                {"id": "start", "type": "default", "data": {"label": "Start", "nodeType": "Start Event"}},
                {"id": "review", "type": "default", "data": {"label": "Review case", "nodeType": "User Task",
                                                             "requirementId": "2"}},
                {"id": "end", "type": "default", "data": {"label": "End", "nodeType": "End Event"}},
            ],
            "edges": [
                {"id": "e1", "source": "start", "target": "review"},
                {"id": "e2", "source": "review", "target": "end"},
                {"id": "e3", "source": "review", "target": "missing"},
            ],
        }

    def test_node_kinds_mapped_and_dangling_edges_dropped(self):
        result = ex.extract_workflow(json.dumps(self._workflow()), "Case routing")
        assert result.succeeded is True
        workflow = result.items[0]
        assert [n.type for n in workflow.nodes] == ["start", "userTask", "end"]
        assert [e.id for e in workflow.edges] == ["e1", "e2"]
        assert workflow.nodes[1].data.requirement_id == 2

    def test_missing_positions_laid_out_vertically(self):
        workflow = ex.extract_workflow(json.dumps(self._workflow()), "x").items[0]
        assert [n.position.y for n in workflow.nodes] == [0.0, 120.0, 240.0]

    def test_workflow_in_prose_recovered(self):
        raw = "Here is the workflow:\n" + json.dumps(self._workflow()) + "\nThanks"
        result = ex.extract_workflow(raw, "x")
        assert result.strategy == ParseStrategy.PATTERN
        assert len(result.items[0].nodes) == 3

    def test_fallback_workflow(self):
        result = ex.extract_workflow("no workflow here", "Case routing")
        assert result.succeeded is False
        workflow = result.items[0]
        assert [n.id for n in workflow.nodes] == ["start", "task-1", "end"]
        assert workflow.nodes[1].data.label == "Implement Case routing"
        assert len(workflow.edges) == 2

    def test_empty_nodes_counts_as_failure(self):
        result = ex.extract_workflow('{"nodes": [], "edges": []}', "x")
        assert result.succeeded is False
        assert len(result.items[0].nodes) == 3
