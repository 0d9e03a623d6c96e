"""Entry-to-evidence matching."""

from .identifiers import extract_identifiers
from .matcher import EvidenceMatcher, within_day_window
from .semantic import SemanticMatchResolver, SemanticResolution

__all__ = [
    "EvidenceMatcher",
    "SemanticMatchResolver",
    "SemanticResolution",
    "extract_identifiers",
    "within_day_window",
]
