"""Turn-by-turn state machine driving completion and action execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping

from ..chat.chat_store import ChatStore
from ..chat.message_model import Chat, isoformat, utcnow
from ..host.protocol import WorkspaceHost
from ..services.i18n import Translations
from .actions.executor import ActionExecutor
from .actions.parser import extract_action_batch
from .client import CompletionClient
from .context import gather_user_context
from .errors import CompletionError
from .prompts import action_results_message, updated_context_message

__all__ = ["LoopState", "LoopOutcome", "AgentLoop", "MIN_TURNS", "MAX_TURNS"]

LOGGER = logging.getLogger(__name__)

MIN_TURNS = 1
MAX_TURNS = 100
_THINKING_PLACEHOLDER = "Thinking..."

PanelPoster = Callable[[Mapping[str, Any]], None]


class LoopState(str, Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    AWAITING_COMPLETION = "awaiting_completion"
    EXECUTING_ACTIONS = "executing_actions"
    DONE = "done"


@dataclass(slots=True)
class LoopOutcome:
    """Why the loop ended and how many completions it requested."""

    reason: str
    turns: int = 0
    error: str | None = None


def clamp_turns(value: Any, default: int = 25) -> int:
    try:
        turns = int(value)
    except (TypeError, ValueError):
        return default
    return max(MIN_TURNS, min(turns, MAX_TURNS))


@dataclass(slots=True)
class AgentLoop:
    """Runs completion → actions → completion until ``stop``, a plain reply, an error or ``max_turns``.

    The loop never touches the chat once ``is_current`` reports that the
    conversation was cleared underneath it.
    """

    client: CompletionClient
    executor: ActionExecutor
    store: ChatStore
    host: WorkspaceHost
    post: PanelPoster
    translations: Callable[[], Translations]
    max_turns: int = 25
    is_current: Callable[[], bool] = field(default=lambda: True)
    state: LoopState = field(default=LoopState.AWAITING_USER_INPUT, init=False)
    _transitions: list[LoopState] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.max_turns = clamp_turns(self.max_turns)

    @property
    def transitions(self) -> tuple[LoopState, ...]:
        return tuple(self._transitions)

    async def run(self, chat: Chat) -> LoopOutcome:
        """Drive the chat until the loop reaches ``DONE``; the user's message must already be appended."""

        turns = 0
        self._set_state(LoopState.AWAITING_COMPLETION)
        try:
            while True:
                if turns >= self.max_turns:
                    LOGGER.warning("Turn limit of %s reached without a stop action", self.max_turns)
                    message = self.translations().turn_limit_message.format(turns=self.max_turns)
                    self._post_assistant(message)
                    return self._finish("turn_limit", turns)

                turns += 1
                try:
                    reply = await self.client.complete(message.to_api() for message in chat.messages)
                except CompletionError as exc:
                    if not self.is_current():
                        return self._finish("cancelled", turns)
                    LOGGER.error("Completion failed: %s", exc.message)
                    self._post_assistant(f"❌ {exc.message}")
                    return self._finish("error", turns, error=exc.message)
                if not self.is_current():
                    return self._finish("cancelled", turns)

                assistant = self.store.append_message("assistant", reply, chat=chat)
                self.post({"type": "addMessage", "message": _message(_THINKING_PLACEHOLDER, assistant.timestamp)})
                self.post({"type": "addMessage", "message": assistant.to_dict()})

                batch = extract_action_batch(reply)
                if batch is None or not batch.actions:
                    return self._finish("no_actions", turns)

                self._set_state(LoopState.EXECUTING_ACTIONS)
                LOGGER.info("Thoughts: %s", batch.thoughts or "No thoughts provided")
                self._post_assistant(self.translations().working_message)
                self.post({"type": "setLoading", "isLoading": True})
                results = await self.executor.execute(batch.actions)
                if not self.is_current():
                    return self._finish("cancelled", turns)

                if batch.has_stop:
                    LOGGER.info("Stop action detected, halting after execution")
                    self._post_assistant(self.translations().task_completed_message)
                    return self._finish("stop", turns)

                context = gather_user_context(
                    self.host,
                    last_edited=self.store.last_edited,
                    last_edit_time=self.store.last_edit_time,
                )
                self.store.append_message("system", updated_context_message(context), chat=chat)
                self.store.append_message("system", action_results_message(results), chat=chat)
                self._set_state(LoopState.AWAITING_COMPLETION)
        finally:
            if self.state is not LoopState.DONE:
                self._set_state(LoopState.DONE)

    def _finish(self, reason: str, turns: int, *, error: str | None = None) -> LoopOutcome:
        self._set_state(LoopState.DONE)
        LOGGER.debug("Loop finished: reason=%s turns=%s", reason, turns)
        return LoopOutcome(reason=reason, turns=turns, error=error)

    def _set_state(self, state: LoopState) -> None:
        self.state = state
        self._transitions.append(state)

    def _post_assistant(self, content: str) -> None:
        self.post({"type": "addMessage", "message": _message(content, isoformat(utcnow()))})


def _message(content: str, timestamp: str) -> Dict[str, str]:
    return {"role": "assistant", "content": content, "timestamp": timestamp}
