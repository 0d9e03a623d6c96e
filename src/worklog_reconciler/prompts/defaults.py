"""Built-in prompt profiles used when no override file provides one."""

from __future__ import annotations

from .models import PromptProfile

DEFAULT_PROFILES: dict[str, PromptProfile] = {
    "patterns": PromptProfile(
        id="patterns",
        instructions="Detect pattern groups among the following time-entry descriptions.",
        rules=[
            "Group descriptions that name the same recurring activity with different wording.",
            "Only group descriptions that are clearly equivalent.",
        ],
        response_format=(
            "Return ONLY a JSON object where each key is a group id and each value is "
            '{ "variants": [string], "suggested_standard": string, "count": number }.'
        ),
    ),
    "semantic_match": PromptProfile(
        id="semantic_match",
        instructions=(
            "For these unmatched time entries, suggest possible commit or ticket matches "
            "from the evidence listed below."
        ),
        rules=[
            "Only suggest a match when the entry text and the evidence clearly describe the same work.",
            "Use null when nothing fits.",
        ],
        response_format=(
            'Return ONLY a JSON array where each element is { "rowIndex": number, '
            '"github_match": "COMMIT@sha=<8-char-sha>" | null, "jira_match": <ticket id> | null, '
            '"confidence": "high" | "medium" | "low" }.'
        ),
    ),
    "decomposition": PromptProfile(
        id="decomposition",
        instructions="Decompose the following work into specific subtasks.",
        rules=[
            "Provide concise subtask descriptions in past tense, professional and defensible.",
            "Hours must sum exactly to the stated total; adjust the last item to ensure the sum matches.",
            "Testing/debugging tasks should not exceed 1h total unless the work is primarily test-related.",
            "Be specific about what was done; reference files/modules where applicable.",
            "Weight hours by ticket story points first, then use lines added + removed as a tiebreaker.",
        ],
        response_format=(
            'Return ONLY valid JSON (no markdown) as an array of objects: { "description": string, '
            '"hours": number, "ticket_id": string | null, "confidence": "high" | "medium" | "low" }.'
        ),
    ),
    "enrichment": PromptProfile(
        id="enrichment",
        instructions=(
            "Enrich the following time entries. For each entry, produce a concise, professional, "
            "past-tense, defensible description of work performed, suitable for time-tracking records."
        ),
        rules=[
            "Avoid referencing AI.",
            "Be specific and reference pull requests, files, or tickets when applicable.",
        ],
        response_format=(
            'Return ONLY valid JSON: an array of objects with { "workItemKey": string, '
            '"enriched_description": string, "confidence": "high" | "medium" | "low", "notes": string }.'
        ),
    ),
}


__all__ = ["DEFAULT_PROFILES"]
