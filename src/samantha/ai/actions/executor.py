"""Sequential executor for parsed action batches."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Sequence

from ...host.protocol import WorkspaceHost
from ...utils.logging import excerpt
from ..errors import ActionError, CommandFailedError, InvalidParameterError, UnsupportedActionError
from .code_runner import CodeRunner
from .edit import apply_edits, unified_diff
from .models import Action, ActionType
from .web_search import DuckDuckGoHtmlProvider, SearchProvider, browse

__all__ = ["ActionExecutor", "ExecutorSettings", "truncate_for_tokens"]

LOGGER = logging.getLogger(__name__)

_TRUNCATION_MARKER = "\n\n[...Content truncated to fit within {max_tokens} token limit...]\n\n"
_MAX_OUTPUT_BYTES = 5 * 1024 * 1024


@dataclass(slots=True)
class ExecutorSettings:
    read_max_tokens: int = 120_000
    command_timeout: float | None = 300.0
    max_output_bytes: int = _MAX_OUTPUT_BYTES


def truncate_for_tokens(content: str, max_tokens: int) -> str:
    """Keep the head and tail of ``content`` when it exceeds ``max_tokens`` (4 chars per token)."""

    if max_tokens <= 0:
        return content
    estimated = math.ceil(len(content) / 4)
    if estimated <= max_tokens:
        return content
    LOGGER.info("Content exceeds token limit (est. %s tokens); truncating to ~%s tokens", estimated, max_tokens)
    half = (max_tokens * 4) // 2
    head = content[:half]
    tail = content[len(content) - half :]
    return f"{head}{_TRUNCATION_MARKER.format(max_tokens=max_tokens)}{tail}"


class ActionExecutor:
    """Runs actions one at a time against a :class:`WorkspaceHost`.

    Each action gets its own ``result``. A failure is recorded as
    ``{"error": message}`` on that action and never stops the rest of the
    batch. Cancellation propagates.
    """

    def __init__(
        self,
        host: WorkspaceHost,
        *,
        settings: ExecutorSettings | None = None,
        search_provider: SearchProvider | None = None,
        code_runner: CodeRunner | None = None,
    ) -> None:
        self._host = host
        self._settings = settings or ExecutorSettings()
        self._search_provider = search_provider or DuckDuckGoHtmlProvider()
        self._code_runner = code_runner or CodeRunner(host.resolve_workspace_root(), self.run_command)
        self._handlers: Dict[ActionType, Callable[[Any], Awaitable[Any]]] = {
            ActionType.READ: self._read,
            ActionType.WRITE: self._write,
            ActionType.SEARCH: self._search,
            ActionType.COMMAND: self._command,
            ActionType.EXECUTE: self._execute,
            ActionType.ANALYZE: self._analyze,
            ActionType.BROWSE: self._browse,
            ActionType.EDIT: self._edit,
            ActionType.STOP: self._stop,
        }

    @property
    def settings(self) -> ExecutorSettings:
        return self._settings

    async def execute(self, actions: Sequence[Action]) -> List[Action]:
        """Execute ``actions`` in order and return copies carrying their results."""

        LOGGER.info("Processing %s agent action(s)", len(actions))
        for index, action in enumerate(actions, start=1):
            LOGGER.info("Action %s: type=%s, data=%s", index, action.type, excerpt(action.data, 150))

        executed: List[Action] = []
        for index, action in enumerate(actions, start=1):
            result = await self._execute_one(action)
            executed.append(Action(type=action.type, data=action.data, result=result))
            LOGGER.info("Result %s: %s", index, excerpt(result, 100))
        return executed

    async def _execute_one(self, action: Action) -> Any:
        kind = action.kind
        try:
            if kind is None:
                raise UnsupportedActionError(action_type=action.type)
            return await self._handlers[kind](action.data)
        except ActionError as exc:
            LOGGER.warning("Action %s failed: %s", action.type, exc)
            return exc.to_dict()
        except (OSError, UnicodeError, ValueError, TypeError, KeyError) as exc:
            LOGGER.warning("Action %s failed: %s", action.type, exc)
            return {"error": str(exc) or exc.__class__.__name__}
        except Exception as exc:
            LOGGER.exception("Unexpected failure in action %s", action.type)
            return {"error": str(exc) or exc.__class__.__name__}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    async def _read(self, data: Any) -> str:
        path = _require(data, "path")
        content = self._host.read_text(Path(path))
        return truncate_for_tokens(content, self._settings.read_max_tokens)

    async def _write(self, data: Any) -> Dict[str, Any]:
        path = _require(data, "path")
        content = data.get("content")
        if content is None:
            content = ""
        self._host.write_text(Path(path), str(content))
        LOGGER.info("File written: %s", path)
        return {"success": True}

    async def _search(self, data: Any) -> Any:
        kind = _require(data, "type")
        if kind == "files":
            return self._host.find_files(str(_require(data, "pattern")))
        if kind == "text":
            return [match.to_dict() for match in self._host.find_text_matches(str(_require(data, "text")))]
        raise InvalidParameterError(f"Unknown search type: {kind}", parameter="type")

    async def _command(self, data: Any) -> str:
        return await self.run_command(str(_require(data, "command")))

    async def _execute(self, data: Any) -> str:
        language = str(_require(data, "language"))
        code = data.get("code") or ""
        return await self._code_runner.run(language, str(code))

    async def _analyze(self, data: Any) -> Any:
        return data

    async def _browse(self, data: Any) -> Dict[str, Any]:
        query = _require(data, "query")
        return await browse(self._search_provider, str(query), data.get("numResults", 5))

    async def _edit(self, data: Any) -> Dict[str, Any]:
        path = str(_require(data, "path"))
        if "edits" not in data:
            raise InvalidParameterError("Missing required field: edits", parameter="edits")
        target = Path(path)
        try:
            original = self._host.read_text(target)
        except FileNotFoundError:
            LOGGER.info("File does not exist: %s, creating it", path)
            self._host.write_text(target, "")
            original = ""
        outcome = apply_edits(original, data["edits"])
        self._host.write_text(target, outcome.after)
        LOGGER.info("File edited successfully: %s", path)
        return {
            "success": True,
            "path": path,
            "operations": outcome.operations,
            "diff": {
                "before": len(outcome.before),
                "after": len(outcome.after),
                "changeSize": outcome.change_size,
                "unified": unified_diff(outcome.before, outcome.after, path),
            },
        }

    async def _stop(self, data: Any) -> Dict[str, bool]:
        return {"stopped": True}

    # ------------------------------------------------------------------
    # Shell
    # ------------------------------------------------------------------
    async def run_command(self, command: str) -> str:
        """Run ``command`` through the shell in the workspace root and return stdout."""

        root = self._host.resolve_workspace_root()
        LOGGER.info("Running command: %s", command)
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(root) if root is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_raw, stderr_raw = await asyncio.wait_for(
                process.communicate(), timeout=self._settings.command_timeout
            )
        except asyncio.TimeoutError as exc:
            _kill(process)
            await process.wait()
            raise CommandFailedError(
                f"Command timed out after {self._settings.command_timeout} seconds: {command}"
            ) from exc
        except asyncio.CancelledError:
            _kill(process)
            raise

        stdout = self._decode(stdout_raw)
        stderr = self._decode(stderr_raw)
        if stderr:
            LOGGER.info("Command stderr: %s", excerpt(stderr, 500))
        if process.returncode:
            raise CommandFailedError(
                f"Command failed: {command}\n{stderr}".rstrip(),
                exit_code=process.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return stdout

    def _decode(self, raw: bytes | None) -> str:
        if not raw:
            return ""
        limit = self._settings.max_output_bytes
        if len(raw) > limit:
            LOGGER.warning("Command output exceeded %s bytes; truncating", limit)
            raw = raw[:limit]
        return raw.decode("utf-8", errors="replace")


def _require(data: Any, key: str) -> Any:
    if not isinstance(data, Mapping):
        raise InvalidParameterError("Action data must be an object", parameter="data")
    value = data.get(key)
    if value is None or value == "":
        raise InvalidParameterError(f"Missing required field: {key}", parameter=key)
    return value


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
