"""Chat thread and message data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal

__all__ = ["ChatRole", "ChatMessage", "Chat", "utcnow", "isoformat"]

ChatRole = Literal["user", "assistant", "system"]


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO-8601 with microseconds and a ``Z`` suffix; message ids are built from this."""

    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(slots=True)
class ChatMessage:
    """Represents a row inside a chat thread; ``timestamp`` doubles as its id."""

    role: ChatRole
    content: str
    created_at: datetime = field(default_factory=utcnow)

    @property
    def timestamp(self) -> str:
        return isoformat(self.created_at)

    @property
    def visible(self) -> bool:
        return self.role != "system"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the message the way the panel expects it."""

        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    def to_api(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class Chat:
    """Ordered conversation thread."""

    id: str
    title: str
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def visible_messages(self) -> List[ChatMessage]:
        return [message for message in self.messages if message.visible]

    def index_of(self, timestamp: str) -> int:
        for index, message in enumerate(self.messages):
            if message.timestamp == timestamp:
                return index
        return -1

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self, *, include_messages: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if include_messages:
            payload["messages"] = [message.to_dict() for message in self.visible_messages()]
        return payload
