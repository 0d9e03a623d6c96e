"""Exception hierarchy for text-generation calls."""

from __future__ import annotations


class GeneratorError(RuntimeError):
    """Base class for text-generation failures."""


class GeneratorNotFoundError(GeneratorError):
    """Raised when the provider executable cannot be located."""


class GeneratorExecutionError(GeneratorError):
    """Raised when the provider exits unsuccessfully or writes no response."""


class ResponseParseError(GeneratorError):
    """Raised when a generator response cannot be recovered as JSON."""


__all__ = [
    "GeneratorError",
    "GeneratorExecutionError",
    "GeneratorNotFoundError",
    "ResponseParseError",
]
