"""Collects the ambient editor context sent alongside each completion request."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from ..host.protocol import ActiveSelection, WorkspaceHost

__all__ = ["gather_user_context"]

LOGGER = logging.getLogger(__name__)
_CURSOR_RADIUS = 3


def gather_user_context(
    host: WorkspaceHost,
    *,
    last_edited: Path | None = None,
    last_edit_time: datetime | None = None,
) -> str:
    """Render the active editor, open editors, recent edit and terminals as plain text."""

    parts: list[str] = []
    selection = host.get_active_selection()
    if selection is None:
        parts.append("No active editor\n")
    else:
        parts.append(_describe_active_editor(selection))

    documents = host.get_open_documents()
    if documents:
        parts.append("\nOPEN EDITORS:\n")
        parts.extend(f"- {document.path}\n" for document in documents)

    if last_edited is not None:
        when = last_edit_time.strftime("%H:%M:%S") if last_edit_time else "unknown time"
        parts.append(f"\nRECENT EDITS:\n- Last modified: {last_edited} at {when}\n")

    terminals = list(host.list_terminals())
    if terminals:
        parts.append("\nTERMINAL:\nAvailable terminals:\n")
        parts.extend(f"- {name}\n" for name in terminals)

    return "".join(parts)


def _describe_active_editor(selection: ActiveSelection) -> str:
    document = selection.document
    text = f"ACTIVE EDITOR:\n- File: {document.path}\n- Language: {document.language_id}\n"
    if not selection.is_empty:
        text += f"- Selection (Lines {selection.start_line}-{selection.end_line}):\n"
        return text + "```\n" + selection.selected_text + "\n```\n"

    lines = document.text.split("\n")
    cursor = min(max(selection.cursor_line, 1), len(lines)) - 1
    start = max(0, cursor - _CURSOR_RADIUS)
    end = min(len(lines) - 1, cursor + _CURSOR_RADIUS)
    excerpt = [f"{'> ' if index == cursor else '  '}{lines[index]}" for index in range(start, end + 1)]
    text += f"- Code around cursor (Line {cursor + 1}):\n"
    return text + "```\n" + "\n".join(excerpt) + "\n```\n"
