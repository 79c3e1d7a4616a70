"""Protocols describing what the assistant needs from its editor and panel."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

__all__ = [
    "ActiveSelection",
    "ChangeListener",
    "OpenDocument",
    "PanelHost",
    "PanelMessageHandler",
    "TextMatch",
    "WorkspaceHost",
]


@dataclass(slots=True)
class OpenDocument:
    """A document currently visible in the editor."""

    path: Path
    text: str
    version: int = 0
    language_id: str = "plaintext"
    exists: bool = True


@dataclass(slots=True)
class ActiveSelection:
    """Cursor/selection state of the active editor; line numbers are 1-indexed."""

    document: OpenDocument
    start_line: int = 1
    end_line: int = 1
    cursor_line: int = 1
    selected_text: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.selected_text


@dataclass(slots=True)
class TextMatch:
    path: str
    line: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "line": self.line, "text": self.text}


class ChangeListener(Protocol):
    """Called with the absolute path of every file the host creates or modifies."""

    def __call__(self, path: Path) -> None:
        ...


PanelMessageHandler = Callable[[Mapping[str, Any]], Any]


class WorkspaceHost(Protocol):
    """Editor/workspace capabilities consumed by the controller and the executor."""

    def resolve_workspace_root(self) -> Path | None:
        ...

    def read_text(self, path: Path) -> str:
        ...

    def write_text(self, path: Path, content: str) -> None:
        ...

    def delete_file(self, path: Path) -> bool:
        ...

    def find_files(self, pattern: str) -> list[str]:
        ...

    def find_text_matches(self, text: str) -> list[TextMatch]:
        ...

    def get_open_documents(self) -> Sequence[OpenDocument]:
        ...

    def get_active_selection(self) -> ActiveSelection | None:
        ...

    def list_terminals(self) -> Sequence[str]:
        ...

    def open_document(self, path: Path) -> None:
        ...

    async def show_information(self, message: str, *choices: str) -> str | None:
        ...

    def add_change_listener(self, listener: ChangeListener) -> None:
        ...


class PanelHost(Protocol):
    """Rendering surface for the chat transcript."""

    def show_panel(self, html: str) -> None:
        ...

    def post_to_panel(self, message: Mapping[str, Any]) -> None:
        ...

    def on_panel_message(self, handler: PanelMessageHandler) -> None:
        ...
