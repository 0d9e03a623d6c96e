"""Layer YAML prompt overrides on top of the built-in profiles."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .defaults import DEFAULT_PROFILES
from .models import PromptProfile


class PromptLoadError(RuntimeError):
    """Raised when one or more prompt override files cannot be parsed."""


def _override_files(directory: Path) -> list[Path]:
    return sorted(
        (path for path in directory.iterdir() if path.suffix in {".yml", ".yaml"} and path.is_file()),
        key=lambda path: path.name,
    )


def _read_override(path: Path) -> PromptProfile | None:
    """Return the profile in ``path``; an empty file overrides nothing."""

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise PromptLoadError(f"{path}: invalid YAML ({exc})") from exc
    if document is None:
        return None
    try:
        return PromptProfile.model_validate(document)
    except ValidationError as exc:
        raise PromptLoadError(f"{path}: {exc.error_count()} validation error(s)") from exc


class PromptLoader:
    """Resolve one profile per request kind.

    Directories are applied in order, so a later directory replaces a profile
    that an earlier one (or the built-in set) defined for the same kind.
    Missing directories are ignored.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        self._directories = [Path(path) for path in search_paths or () if Path(path).is_dir()]
        self._profiles: dict[str, PromptProfile] | None = None

    def load_all(self) -> dict[str, PromptProfile]:
        if self._profiles is None:
            profiles = dict(DEFAULT_PROFILES)
            problems: list[str] = []
            for directory in self._directories:
                for path in _override_files(directory):
                    try:
                        profile = _read_override(path)
                    except PromptLoadError as exc:
                        problems.append(str(exc))
                        continue
                    if profile is not None:
                        profiles[profile.id] = profile
            if problems:
                raise PromptLoadError("; ".join(problems))
            self._profiles = profiles
        return dict(self._profiles)

    def get(self, kind: str) -> PromptProfile:
        profile = self.load_all().get(kind)
        if profile is None:
            raise PromptLoadError(f"No prompt profile for request kind '{kind}'")
        return profile


__all__ = ["PromptLoadError", "PromptLoader"]
