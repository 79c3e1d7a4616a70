"""Filesystem-backed workspace host used by the desktop launcher and the tests."""

from __future__ import annotations

import inspect
import logging
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Sequence

from ..utils.file_io import looks_binary, read_text, relative_display, resolve_path, write_text
from .protocol import ActiveSelection, ChangeListener, OpenDocument, TextMatch

__all__ = ["LocalWorkspaceHost", "ConfirmHandler", "NoticeHandler"]

LOGGER = logging.getLogger(__name__)

ConfirmHandler = Callable[[str, Sequence[str]], "str | None | Awaitable[str | None]"]
NoticeHandler = Callable[[str], None]

_SKIPPED_DIRS = frozenset({".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", ".ai-assistant-temp"})
_LANGUAGE_IDS: Dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".sh": "shellscript",
    ".html": "html",
    ".css": "css",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".rb": "ruby",
    ".ps1": "powershell",
}


def _language_for(path: Path) -> str:
    return _LANGUAGE_IDS.get(path.suffix.lower(), "plaintext")


class LocalWorkspaceHost:
    """Implements :class:`~samantha.host.protocol.WorkspaceHost` on a local directory.

    Open documents are a registry of paths; their text is read from disk on
    demand so snapshots always see what the actions wrote. Confirmation prompts
    go through ``confirm``; without one every prompt resolves to ``None``,
    which never counts as approval.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        confirm: ConfirmHandler | None = None,
        on_notice: NoticeHandler | None = None,
        max_search_results: int = 500,
    ) -> None:
        self._root = Path(root).expanduser().resolve()
        self._confirm = confirm
        self._on_notice = on_notice
        self._max_search_results = max(1, max_search_results)
        self._open: List[Path] = []
        self._versions: Dict[Path, int] = {}
        self._active: Path | None = None
        self._selection: tuple[int, int, int] | None = None
        self._terminals: List[str] = []
        self._listeners: List[ChangeListener] = []
        self.notices: List[str] = []

    # ------------------------------------------------------------------
    # Workspace files
    # ------------------------------------------------------------------
    def resolve_workspace_root(self) -> Path | None:
        return self._root

    def resolve(self, path: Path | str) -> Path:
        return resolve_path(self._root, path)

    def read_text(self, path: Path | str) -> str:
        return read_text(self.resolve(path))

    def write_text(self, path: Path | str, content: str) -> None:
        target = self.resolve(path)
        write_text(target, content)
        self._versions[target] = self._versions.get(target, 0) + 1
        self._emit_change(target)

    def delete_file(self, path: Path | str) -> bool:
        target = self.resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            LOGGER.debug("File %s does not exist; skipping deletion", target)
            return False
        self._versions.pop(target, None)
        if target in self._open:
            self._open.remove(target)
            if self._active == target:
                self._active = self._open[-1] if self._open else None
                self._selection = None
        return True

    def find_files(self, pattern: str) -> list[str]:
        pattern = (pattern or "").strip().lstrip("/")
        if not pattern:
            return []
        if ".." in Path(pattern).parts:
            LOGGER.warning("Ignoring file search outside the workspace: %s", pattern)
            return []
        results: list[str] = []
        for candidate in sorted(self._root.glob(pattern)):
            if not candidate.is_file() or self._is_skipped(candidate):
                continue
            results.append(relative_display(self._root, candidate))
            if len(results) >= self._max_search_results:
                LOGGER.debug("File search for %r truncated at %s results", pattern, len(results))
                break
        return results

    def find_text_matches(self, text: str) -> list[TextMatch]:
        if not text:
            return []
        matches: list[TextMatch] = []
        for candidate in self._iter_files():
            if looks_binary(candidate):
                continue
            try:
                content = read_text(candidate, errors="replace")
            except OSError as exc:
                LOGGER.debug("Skipping unreadable file %s: %s", candidate, exc)
                continue
            for number, line in enumerate(content.splitlines(), start=1):
                if text in line:
                    matches.append(TextMatch(relative_display(self._root, candidate), number, line.strip()))
                    if len(matches) >= self._max_search_results:
                        return matches
        return matches

    # ------------------------------------------------------------------
    # Editor state
    # ------------------------------------------------------------------
    def open_document(self, path: Path | str) -> None:
        target = self.resolve(path)
        if target in self._open:
            self._open.remove(target)
        self._open.append(target)
        self._active = target
        self._selection = None

    def close_document(self, path: Path | str) -> None:
        target = self.resolve(path)
        if target in self._open:
            self._open.remove(target)
        if self._active == target:
            self._active = self._open[-1] if self._open else None
            self._selection = None

    def set_selection(self, start_line: int, end_line: int | None = None, *, cursor_line: int | None = None) -> None:
        """Record the active editor's cursor (``end_line`` omitted) or an inclusive 1-indexed line selection."""

        end = end_line if end_line is not None else start_line
        self._selection = (start_line, end, cursor_line if cursor_line is not None else end)

    def get_open_documents(self) -> Sequence[OpenDocument]:
        documents: list[OpenDocument] = []
        for path in list(self._open):
            exists = True
            try:
                text = read_text(path)
            except FileNotFoundError:
                text, exists = "", False
            except OSError as exc:
                LOGGER.warning("Unable to read open document %s: %s", path, exc)
                continue
            documents.append(
                OpenDocument(
                    path=path,
                    text=text,
                    version=self._versions.get(path, 0),
                    language_id=_language_for(path),
                    exists=exists,
                )
            )
        return documents

    def get_active_selection(self) -> ActiveSelection | None:
        if self._active is None:
            return None
        document = next((doc for doc in self.get_open_documents() if doc.path == self._active), None)
        if document is None:
            return None
        if self._selection is None:
            return ActiveSelection(document=document)
        start, end, cursor = self._selection
        selected = ""
        if end > start:
            lines = document.text.split("\n")
            selected = "\n".join(lines[max(0, start - 1) : end])
        return ActiveSelection(
            document=document,
            start_line=start,
            end_line=end,
            cursor_line=cursor,
            selected_text=selected,
        )

    def add_terminal(self, name: str) -> None:
        self._terminals.append(name)

    def list_terminals(self) -> Sequence[str]:
        return tuple(self._terminals)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    async def show_information(self, message: str, *choices: str) -> str | None:
        LOGGER.info("Notice: %s", message)
        self.notices.append(message)
        if self._on_notice is not None:
            self._on_notice(message)
        if not choices or self._confirm is None:
            return None
        answer: Any = self._confirm(message, choices)
        if inspect.isawaitable(answer):
            answer = await answer
        return answer if answer in choices else None

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit_change(self, path: Path) -> None:
        for listener in list(self._listeners):
            try:
                listener(path)
            except Exception:  # pragma: no cover - listener bugs must not break writes
                LOGGER.exception("Change listener failed for %s", path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _iter_files(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = sorted(name for name in dirnames if name not in _SKIPPED_DIRS)
            for name in sorted(filenames):
                yield Path(dirpath) / name

    def _is_skipped(self, path: Path) -> bool:
        try:
            parts = path.relative_to(self._root).parts
        except ValueError:
            return False
        return any(part in _SKIPPED_DIRS for part in parts[:-1])
