"""Text-generation provider orchestration utilities."""

from .errors import GeneratorError, GeneratorExecutionError, GeneratorNotFoundError, ResponseParseError
from .runner import FakeGeneratorRunner, GenerationResult, GeneratorRunner
from .utils import parse_json_response, strip_code_fences

__all__ = [
    "FakeGeneratorRunner",
    "GenerationResult",
    "GeneratorError",
    "GeneratorExecutionError",
    "GeneratorNotFoundError",
    "GeneratorRunner",
    "ResponseParseError",
    "parse_json_response",
    "strip_code_fences",
]
