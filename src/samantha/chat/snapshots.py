"""Per-message workspace snapshots and restore."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, FrozenSet, List

from ..host.protocol import WorkspaceHost
from .chat_store import ChatStore
from .message_model import ChatMessage, utcnow

__all__ = ["FileSnapshot", "StateSnapshot", "RestoreOutcome", "SnapshotManager", "RestoreError"]

LOGGER = logging.getLogger(__name__)


class RestoreError(Exception):
    """Raised when a restore target cannot be found; the message is shown to the user."""


@dataclass(slots=True)
class FileSnapshot:
    exists: bool
    content: str
    version: int = 0


@dataclass(slots=True)
class StateSnapshot:
    files: Dict[Path, FileSnapshot]
    tracked_files: FrozenSet[Path]
    chat_id: str | None
    timestamp: datetime = field(default_factory=utcnow)
    primary_file: Path | None = None


@dataclass(slots=True)
class RestoreOutcome:
    restored: int = 0
    deleted: int = 0
    failed: List[Path] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)


class SnapshotManager:
    """Captures open-document state before each user message and rolls it back on request.

    Only documents open in the editor are captured, so files changed on disk
    but never opened cannot be restored.
    """

    def __init__(self, store: ChatStore, host: WorkspaceHost) -> None:
        self._store = store
        self._host = host

    def capture(self, message_id: str) -> StateSnapshot:
        documents = list(self._host.get_open_documents())
        files = {
            document.path: FileSnapshot(exists=document.exists, content=document.text, version=document.version)
            for document in documents
        }
        selection = self._host.get_active_selection()
        primary = selection.document.path if selection is not None else None
        snapshot = StateSnapshot(
            files=files,
            tracked_files=self._store.tracked_files,
            chat_id=self._store.current_id,
            primary_file=primary if primary in files else None,
        )
        self._store.store_snapshot(message_id, snapshot)
        self._store.reset_tracked(document.path for document in documents)
        LOGGER.debug("Captured snapshot %s with %s file(s)", message_id, len(files))
        return snapshot

    async def restore(self, message_id: str) -> RestoreOutcome:
        """Roll the workspace and the current chat back to ``message_id``."""

        snapshot = self._store.get_snapshot(message_id)
        if snapshot is None:
            raise RestoreError("No previous state found for this message")
        chat = self._store.current_chat()
        index = chat.index_of(message_id)
        if index == -1:
            raise RestoreError("Message not found in conversation")

        outcome = RestoreOutcome()
        existed = {path for path, data in snapshot.files.items() if data.exists}
        created_after = sorted(self._store.tracked_files - snapshot.tracked_files - existed)
        if created_after:
            answer = await self._host.show_information(
                f"{len(created_after)} file(s) were created after this message. Delete them?", "Yes", "No"
            )
            if answer == "Yes":
                outcome.deleted = self._delete_files(created_after)
                if outcome.deleted:
                    await self._host.show_information(
                        f"Deleted {outcome.deleted} file(s) created after the message"
                    )

        for path, data in snapshot.files.items():
            if not data.exists:
                continue
            try:
                self._host.write_text(path, data.content)
            except OSError as exc:
                LOGGER.error("Error restoring file %s: %s", path, exc)
                outcome.failed.append(path)
                continue
            outcome.restored += 1

        if snapshot.primary_file is not None and snapshot.primary_file not in outcome.failed:
            try:
                self._host.open_document(snapshot.primary_file)
            except OSError as exc:
                LOGGER.error("Error opening primary file %s: %s", snapshot.primary_file, exc)

        if outcome.restored:
            await self._host.show_information(f"Restored {outcome.restored} file(s) to state before message")
        else:
            await self._host.show_information("Restored to initial state before any changes")

        self._store.truncate_after(chat, index)
        self._store.reset_tracked(snapshot.tracked_files)
        outcome.messages = chat.visible_messages()
        LOGGER.info(
            "Restored state for %s: %s file(s) restored, %s deleted, %s failed",
            message_id,
            outcome.restored,
            outcome.deleted,
            len(outcome.failed),
        )
        return outcome

    def _delete_files(self, paths: List[Path]) -> int:
        deleted = 0
        for path in paths:
            try:
                if self._host.delete_file(path):
                    deleted += 1
            except OSError as exc:
                LOGGER.error("Error deleting file %s: %s", path, exc)
        return deleted
