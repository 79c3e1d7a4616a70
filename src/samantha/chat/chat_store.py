"""Session state: chat threads, per-message snapshots and tracked files."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List

from .message_model import Chat, ChatMessage, ChatRole, utcnow

if TYPE_CHECKING:
    from .snapshots import StateSnapshot

__all__ = ["ChatStore"]

LOGGER = logging.getLogger(__name__)
_TIMESTAMP_STEP = timedelta(microseconds=1)


class ChatStore:
    """Owns every chat thread plus the snapshot and file-tracking state tied to them.

    There is always at least one chat once :meth:`current_chat` has been
    called; deleting the last chat creates a fresh one.
    """

    def __init__(self) -> None:
        self._chats: List[Chat] = []
        self._current_id: str | None = None
        self._snapshots: Dict[str, "StateSnapshot"] = {}
        self._tracked: set[Path] = set()
        self.last_edited: Path | None = None
        self.last_edit_time: datetime | None = None

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------
    @property
    def chats(self) -> List[Chat]:
        return list(self._chats)

    @property
    def current_id(self) -> str | None:
        return self._current_id

    def create_chat(self, title: str | None = None) -> Chat:
        now = utcnow()
        chat = Chat(
            id=uuid.uuid4().hex,
            title=(title or "").strip() or f"Chat {len(self._chats) + 1}",
            created_at=now,
            updated_at=now,
        )
        self._chats.append(chat)
        self._current_id = chat.id
        LOGGER.debug("Created chat %s (%s)", chat.id, chat.title)
        return chat

    def get_chat(self, chat_id: str | None) -> Chat | None:
        return next((chat for chat in self._chats if chat.id == chat_id), None)

    def current_chat(self) -> Chat:
        if not self._chats:
            return self.create_chat()
        chat = self.get_chat(self._current_id)
        if chat is None:
            chat = self._chats[0]
            self._current_id = chat.id
        return chat

    def switch_chat(self, chat_id: str) -> Chat | None:
        chat = self.get_chat(chat_id)
        if chat is not None:
            self._current_id = chat.id
        return chat

    def rename_chat(self, chat_id: str, title: str) -> Chat | None:
        chat = self.get_chat(chat_id)
        if chat is not None:
            chat.title = title
            chat.touch()
        return chat

    def delete_chat(self, chat_id: str) -> Chat | None:
        """Remove a chat and the snapshots keyed by its messages."""

        chat = self.get_chat(chat_id)
        if chat is None:
            return None
        self._chats.remove(chat)
        for message in chat.messages:
            self._snapshots.pop(message.timestamp, None)
        if self._current_id == chat_id:
            if self._chats:
                self._current_id = self._chats[0].id
            else:
                self.create_chat()
        LOGGER.info("Deleted chat %s (%s)", chat.id, chat.title)
        return chat

    def chat_list(self) -> List[dict]:
        return [chat.to_dict(include_messages=False) for chat in self._chats]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    def append_message(self, role: ChatRole, content: str, *, chat: Chat | None = None) -> ChatMessage:
        target = chat or self.current_chat()
        taken = {message.timestamp for message in target.messages}
        message = ChatMessage(role=role, content=content)
        while message.timestamp in taken:
            message.created_at += _TIMESTAMP_STEP
        target.messages.append(message)
        target.touch()
        return message

    def replace_system_messages(self, content: str, *, chat: Chat | None = None) -> ChatMessage:
        """Drop every system message in the chat and append ``content`` as the new one."""

        target = chat or self.current_chat()
        target.messages = [message for message in target.messages if message.role != "system"]
        return self.append_message("system", content, chat=target)

    def clear_conversation(self, *, chat: Chat | None = None) -> Chat:
        target = chat or self.current_chat()
        target.messages = [message for message in target.messages if message.role == "system"]
        target.touch()
        return target

    def truncate_after(self, chat: Chat, index: int) -> None:
        """Keep messages up to and including ``index``."""

        chat.messages = chat.messages[: index + 1]
        chat.touch()

    # ------------------------------------------------------------------
    # Snapshots and tracked files
    # ------------------------------------------------------------------
    def store_snapshot(self, message_id: str, snapshot: "StateSnapshot") -> None:
        self._snapshots[message_id] = snapshot

    def get_snapshot(self, message_id: str) -> "StateSnapshot | None":
        return self._snapshots.get(message_id)

    def has_snapshot(self, message_id: str) -> bool:
        return message_id in self._snapshots

    @property
    def tracked_files(self) -> frozenset[Path]:
        return frozenset(self._tracked)

    def track(self, path: Path) -> None:
        self._tracked.add(path)

    def reset_tracked(self, paths: Iterable[Path]) -> None:
        self._tracked = set(paths)

    def record_edit(self, path: Path) -> None:
        """Change-listener hook: remember the edit and start tracking the file."""

        self.last_edited = path
        self.last_edit_time = utcnow()
        self._tracked.add(path)
