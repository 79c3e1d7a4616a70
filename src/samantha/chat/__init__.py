"""Chat threads, snapshots and the panel."""

from .chat_store import ChatStore
from .message_model import Chat, ChatMessage
from .snapshots import FileSnapshot, RestoreError, SnapshotManager, StateSnapshot

__all__ = ["Chat", "ChatMessage", "ChatStore", "FileSnapshot", "RestoreError", "SnapshotManager", "StateSnapshot"]
