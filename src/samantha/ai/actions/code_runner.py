"""Runs model-supplied snippets from a temp file inside the workspace."""

from __future__ import annotations

import logging
import os
import shlex
import sys
import tempfile
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict

from ..errors import UnsupportedLanguageError

__all__ = ["CodeRunner", "TEMP_DIR_NAME"]

LOGGER = logging.getLogger(__name__)

TEMP_DIR_NAME = ".ai-assistant-temp"

_EXTENSIONS: Dict[str, str] = {
    "js": ".js",
    "javascript": ".js",
    "ts": ".ts",
    "typescript": ".ts",
    "py": ".py",
    "python": ".py",
    "bash": ".sh",
    "sh": ".sh",
    "rb": ".rb",
    "ruby": ".rb",
    "ps1": ".ps1",
    "powershell": ".ps1",
}

CommandRunner = Callable[[str], Awaitable[str]]


class CodeRunner:
    """Writes ``code`` to ``<root>/.ai-assistant-temp/code_<ms><ext>`` and runs it through ``run_command``."""

    def __init__(self, workspace_root: Path | None, run_command: CommandRunner) -> None:
        self._root = workspace_root
        self._run_command = run_command

    @property
    def temp_dir(self) -> Path:
        base = self._root if self._root is not None else Path(tempfile.gettempdir())
        return base / TEMP_DIR_NAME

    async def run(self, language: str, code: str) -> str:
        key = (language or "").strip().lower()
        extension = _EXTENSIONS.get(key)
        if extension is None:
            raise UnsupportedLanguageError(language=language)

        temp_dir = self.temp_dir
        temp_dir.mkdir(parents=True, exist_ok=True)
        temp_file = temp_dir / f"code_{time.time_ns() // 1_000_000}{extension}"
        temp_file.write_text(code or "", encoding="utf-8")
        LOGGER.info("Executing %s snippet from %s", key, temp_file)
        try:
            command = self._command_for(key, temp_file)
            return await self._run_command(command)
        finally:
            try:
                temp_file.unlink()
            except OSError as exc:
                LOGGER.debug("Failed to remove temp file %s: %s", temp_file, exc)

    def _command_for(self, language: str, path: Path) -> str:
        quoted = shlex.quote(str(path))
        if language in {"js", "javascript"}:
            return f"node {quoted}"
        if language in {"ts", "typescript"}:
            return f"npx ts-node {quoted}"
        if language in {"py", "python"}:
            return f"{shlex.quote(sys.executable or 'python')} {quoted}"
        if language in {"bash", "sh"}:
            if os.name == "nt":
                return f"bash {quoted}"
            path.chmod(0o755)
            return quoted
        raise UnsupportedLanguageError(language=language, known=True)
