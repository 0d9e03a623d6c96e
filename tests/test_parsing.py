from __future__ import annotations

import pytest
from pydantic import ValidationError

from worklog_reconciler.generator import ResponseParseError, parse_json_response, strip_code_fences
from worklog_reconciler.schemas import (
    EnrichmentPayload,
    PatternGroupPayload,
    SemanticMatchPayload,
    SubTaskPayload,
)


def test_parse_json_response_handles_fences_and_prose() -> None:
    assert parse_json_response('```json\n[{"a": 1}]\n```') == [{"a": 1}]
    assert parse_json_response('Here you go:\n[1, 2, 3]\nThanks!') == [1, 2, 3]
    assert parse_json_response('Result: {"groups": [1, 2]} done') == {"groups": [1, 2]}


@pytest.mark.parametrize("text", ["", None, "```\n```", "no json at all", "[1, 2"])
def test_parse_json_response_rejects_unrecoverable_text(text) -> None:
    with pytest.raises(ResponseParseError):
        parse_json_response(text)


def test_strip_code_fences() -> None:
    assert strip_code_fences("```python\nx\n```") == "x"
    assert strip_code_fences(None) == ""


def test_semantic_payload_normalizes_keys_and_values() -> None:
    payload = SemanticMatchPayload.model_validate(
        {"RowIndex": "3", "GITHUB_MATCH": "null", "Jira_Match": " SD-4 ", "Confidence": "HIGH"}
    )

    assert payload.entry_index == 3
    assert payload.evidence_ref is None
    assert payload.ticket_ref == "SD-4"
    assert payload.confidence == "high"
    assert payload.confidence_provided is True


def test_semantic_payload_tolerates_bad_optional_fields() -> None:
    payload = SemanticMatchPayload.model_validate({"rowIndex": "three", "confidence": None})

    assert payload.entry_index is None
    assert payload.confidence == "low"
    assert payload.confidence_provided is False


def test_sub_task_payload_coerces_hours_and_ticket() -> None:
    payload = SubTaskPayload.model_validate({"Description": " Build API ", "hours": "1.5", "ticket_id": "sd-3"})

    assert payload.description == "Build API"
    assert payload.hours == 1.5
    assert payload.ticket_id == "SD-3"
    assert payload.confidence == "low"


@pytest.mark.parametrize(
    "element",
    [
        {"description": "No hours"},
        {"description": "Bad hours", "hours": "lots"},
        {"description": "Infinite", "hours": float("inf")},
        {"description": "Listed", "hours": [1]},
    ],
)
def test_sub_task_payload_requires_numeric_hours(element) -> None:
    with pytest.raises(ValidationError):
        SubTaskPayload.model_validate(element)


def test_enrichment_payload_aliases() -> None:
    payload = EnrichmentPayload.model_validate(
        {"workItemKey": "3:1", "Enriched_Description": "  Tidy text  ", "notes": None, "confidence": "Medium"}
    )

    assert payload.work_item_key == "3:1"
    assert payload.enriched_description == "Tidy text"
    assert payload.notes == ""
    assert payload.confidence == "medium"


def test_pattern_group_payload_drops_junk() -> None:
    payload = PatternGroupPayload.model_validate(
        {"Variants": ["standup", "", 4, " Stand-up "], "suggested_standard": "Daily standup", "count": "x"}
    )

    assert payload.variants == ["standup", "Stand-up"]
    assert payload.suggested_standard == "Daily standup"
    assert payload.count == 0
