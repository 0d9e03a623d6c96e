"""Utility helpers for the generator runner."""

from __future__ import annotations

import json
import os
import re
from typing import Any, Mapping

from .errors import ResponseParseError

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

_FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?")


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


def strip_code_fences(text: str | None) -> str:
    """Remove markdown code fences (with or without a language tag)."""

    if not text:
        return ""
    return _FENCE_PATTERN.sub("", text).strip()


def parse_json_response(text: str | None) -> Any:
    """Parse a generator response body as JSON.

    Code fences are stripped first. When the remaining text still carries prose
    around the payload, the outermost array or object span is tried before
    giving up.
    """

    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ResponseParseError("Generator returned an empty response")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    spans = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer)
        if start != -1 and end > start:
            spans.append((start, end))
    # The span opening first is the outermost one.
    for start, end in sorted(spans):
        try:
            return json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            continue

    preview = cleaned[:120].replace("\n", " ")
    raise ResponseParseError(f"Generator response is not valid JSON: {preview!r}")


__all__ = ["ResponseParseError", "parse_json_response", "sanitize_environment", "strip_code_fences"]
