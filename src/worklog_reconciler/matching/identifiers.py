"""Ticket identifier extraction."""

from __future__ import annotations

import re
from typing import Iterable

IDENTIFIER_PATTERN = re.compile(r"\b([A-Za-z]{2,10}-\d+)\b")


def extract_identifiers(text: str | None, allowed_prefixes: Iterable[str] | None = None) -> tuple[str, ...]:
    """Return unique identifiers such as ``SD-123`` found in ``text``.

    Identifiers are upper-cased and kept in first-seen order. When
    ``allowed_prefixes`` is given, only identifiers with one of those prefixes
    are returned.
    """

    if not text or not isinstance(text, str):
        return ()

    ordered: dict[str, None] = {}
    for match in IDENTIFIER_PATTERN.finditer(text):
        ordered.setdefault(match.group(1).upper(), None)

    prefixes = {prefix.upper() for prefix in allowed_prefixes or ()}
    if not prefixes:
        return tuple(ordered)
    return tuple(identifier for identifier in ordered if identifier.split("-", 1)[0] in prefixes)


__all__ = ["IDENTIFIER_PATTERN", "extract_identifiers"]
