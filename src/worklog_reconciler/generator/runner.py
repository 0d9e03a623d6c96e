"""Async runner for the external text-generation provider."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Sequence

from ..usage import TokenUsage
from .errors import GeneratorError, GeneratorExecutionError, GeneratorNotFoundError
from .utils import sanitize_environment

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "worklog-generator"
RETRY_DELAYS_SECONDS: tuple[float, ...] = (5.0, 15.0, 30.0)
_OVERLOAD_MARKERS = ("overloaded", "529")


@dataclass(slots=True)
class GenerationResult:
    """Holds the outcome of a provider invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    response: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def usage(self) -> TokenUsage:
        return TokenUsage.from_metadata(self.metadata)


class GeneratorRunner:
    """Execute provider requests over the prompt-file/response-file contract.

    The provider is invoked as ``<executable> [flags...] <prompt_file>
    <response_file>``. It writes the response text to ``response_file`` and may
    write usage metadata to ``<response_file>.meta.json``.
    """

    def __init__(
        self,
        executable: Path | None = None,
        *,
        workdir: Path | None = None,
        default_flags: Sequence[str] | None = None,
        retry_delays: Sequence[float] = RETRY_DELAYS_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._workdir = Path(workdir) if workdir is not None else None
        self._default_flags = list(default_flags or [])
        self._retry_delays = tuple(retry_delays)
        self._sleep = sleep or asyncio.sleep

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise GeneratorNotFoundError(f"Generator executable not found at {candidate}")

        binary = shutil.which(DEFAULT_EXECUTABLE)
        if binary is None:
            raise GeneratorNotFoundError(f"{DEFAULT_EXECUTABLE} executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def version(self) -> GenerationResult:
        return await self._invoke("--version")

    async def generate(self, prompt: str, *, flags: Sequence[str] | None = None) -> GenerationResult:
        """Send ``prompt`` to the provider and return its response.

        Overload failures are retried with growing delays; every other failure
        raises ``GeneratorExecutionError`` straight away.
        """

        workdir = self._workdir or Path(tempfile.gettempdir()) / "worklog-reconciler" / "prompts"
        workdir.mkdir(parents=True, exist_ok=True)
        request_id = uuid.uuid4().hex
        prompt_path = workdir / f"prompt-{request_id}.txt"
        response_path = workdir / f"response-{request_id}.txt"
        prompt_path.write_text(prompt, encoding="utf-8")

        command_flags = [*self._default_flags, *(flags or [])]
        attempts = len(self._retry_delays) + 1
        result: GenerationResult | None = None
        for attempt in range(attempts):
            if attempt:
                delay = self._retry_delays[attempt - 1]
                logger.warning(
                    "Provider overloaded; retrying",
                    extra={"attempt": attempt, "max_retries": attempts - 1, "delay": delay},
                )
                await self._sleep(delay)
                response_path.unlink(missing_ok=True)

            result = await self._invoke(*command_flags, str(prompt_path), str(response_path))
            if result.ok:
                break

            detail = result.stderr or result.stdout
            if not detail and response_path.exists():
                detail = response_path.read_text(encoding="utf-8", errors="replace")
            overloaded = any(marker in detail for marker in _OVERLOAD_MARKERS)
            if not overloaded or attempt == attempts - 1:
                raise GeneratorExecutionError(
                    f"Provider execution failed with status {result.returncode}: {detail.strip()}"
                )

        assert result is not None
        if not response_path.exists():
            raise GeneratorExecutionError("Provider did not write a response file")
        result.response = response_path.read_text(encoding="utf-8", errors="replace")

        meta_path = Path(f"{response_path}.meta.json")
        if meta_path.exists():
            try:
                result.metadata = json.loads(meta_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                logger.warning("Failed to read provider metadata", extra={"error": str(exc)})
        return result

    async def _invoke(self, *args: str) -> GenerationResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sanitize_environment(),
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return GenerationResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeGeneratorRunner(GeneratorRunner):
    """Test double that replays canned provider responses in order.

    Each queued item is either response text, a ``GenerationResult``, or an
    exception instance to raise for that call.
    """

    def __init__(self, responses: Iterable[str | GenerationResult | BaseException] | None = None) -> None:  # type: ignore[override]
        self._responses = list(responses or [])
        self._prompts: list[str] = []
        self._executable_path = Path("/tmp/fake-generator")

    async def generate(self, prompt: str, *, flags: Sequence[str] | None = None) -> GenerationResult:  # type: ignore[override]
        self._prompts.append(prompt)
        if not self._responses:
            return GenerationResult(args=("generate",), returncode=0, stdout="", stderr="", response="")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, GenerationResult):
            return item
        return GenerationResult(args=("generate",), returncode=0, stdout="", stderr="", response=item)

    @property
    def prompts(self) -> list[str]:
        return self._prompts

    @property
    def pending(self) -> int:
        return len(self._responses)


__all__ = [
    "FakeGeneratorRunner",
    "GenerationResult",
    "GeneratorError",
    "GeneratorExecutionError",
    "GeneratorNotFoundError",
    "GeneratorRunner",
]
