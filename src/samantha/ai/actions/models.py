"""Action and action-batch value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping

__all__ = ["ActionType", "Action", "ActionBatch"]


class ActionType(str, Enum):
    READ = "read"
    WRITE = "write"
    SEARCH = "search"
    COMMAND = "command"
    EXECUTE = "execute"
    ANALYZE = "analyze"
    BROWSE = "browse"
    EDIT = "edit"
    STOP = "stop"

    @classmethod
    def coerce(cls, value: Any) -> "ActionType | None":
        try:
            return cls(str(value))
        except ValueError:
            return None


@dataclass(slots=True)
class Action:
    """A single requested operation; ``type`` stays a raw string so unknown kinds survive to execution."""

    type: str
    data: Any = None
    result: Any = None

    @property
    def kind(self) -> ActionType | None:
        return ActionType.coerce(self.type)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type, "data": self.data}
        if self.result is not None:
            payload["result"] = self.result
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Action":
        return cls(type=str(payload.get("type", "")), data=payload.get("data"))


@dataclass(slots=True)
class ActionBatch:
    thoughts: str = ""
    actions: List[Action] = field(default_factory=list)

    @property
    def has_stop(self) -> bool:
        return any(action.kind is ActionType.STOP for action in self.actions)

    def to_dict(self) -> Dict[str, Any]:
        return {"thoughts": self.thoughts, "actions": [action.to_dict() for action in self.actions]}
