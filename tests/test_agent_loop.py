"""Tests for the completion/action loop state machine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from samantha.ai.actions.executor import ActionExecutor
from samantha.ai.errors import RateLimited
from samantha.ai.loop import AgentLoop, LoopState, clamp_turns
from samantha.chat.chat_store import ChatStore
from samantha.host.local import LocalWorkspaceHost
from samantha.services.i18n import get_translations

from helpers import FakeCompletionClient, FakePanel, FakeSearchProvider, fenced


def _batch(*actions: dict[str, Any], thoughts: str = "plan") -> str:
    return fenced(json.dumps({"thoughts": thoughts, "actions": list(actions)}))


def _loop(host: LocalWorkspaceHost, panel: FakePanel, replies: list[Any], **kwargs: Any) -> tuple[AgentLoop, ChatStore]:
    store = ChatStore()
    host.add_change_listener(store.record_edit)
    loop = AgentLoop(
        client=FakeCompletionClient(replies),
        executor=ActionExecutor(host, search_provider=FakeSearchProvider()),
        store=store,
        host=host,
        post=panel.post_to_panel,
        translations=lambda: get_translations("en"),
        **kwargs,
    )
    store.append_message("user", "do the thing")
    return loop, store


@pytest.mark.asyncio
async def test_plain_reply_ends_the_loop(host: LocalWorkspaceHost, panel: FakePanel) -> None:
    loop, store = _loop(host, panel, ["Just an answer."])

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "no_actions"
    assert outcome.turns == 1
    assert panel.added_contents() == ["Thinking...", "Just an answer."]
    thinking, reply = panel.of_type("addMessage")
    assert thinking["message"]["timestamp"] == reply["message"]["timestamp"]
    assert loop.state is LoopState.DONE


@pytest.mark.asyncio
async def test_actions_feed_results_back_until_stop(host: LocalWorkspaceHost, panel: FakePanel, workspace: Path) -> None:
    replies = [
        _batch({"type": "write", "data": {"path": "out.txt", "content": "hi"}}),
        _batch({"type": "read", "data": {"path": "out.txt"}}, {"type": "stop", "data": {}}),
    ]
    loop, store = _loop(host, panel, replies)

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "stop"
    assert outcome.turns == 2
    assert (workspace / "out.txt").read_text(encoding="utf-8") == "hi"
    client = loop.client
    second_call = client.calls[1]
    assert second_call[-2]["role"] == "system"
    assert second_call[-2]["content"].startswith("Updated context after actions:\n")
    assert second_call[-1]["content"].startswith("The assistant has completed the actions. Here are the results:")
    assert '"success": true' in second_call[-1]["content"]
    assert panel.added_contents()[-1] == "✅ Task completed."
    assert {"type": "setLoading", "isLoading": True} in panel.posted
    assert loop.transitions == (
        LoopState.AWAITING_COMPLETION,
        LoopState.EXECUTING_ACTIONS,
        LoopState.AWAITING_COMPLETION,
        LoopState.EXECUTING_ACTIONS,
        LoopState.DONE,
    )


@pytest.mark.asyncio
async def test_turn_limit_stops_runaway_loops(host: LocalWorkspaceHost, panel: FakePanel) -> None:
    analyze = _batch({"type": "analyze", "data": {"question": "again?"}})
    loop, store = _loop(host, panel, [analyze] * 5, max_turns=2)

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "turn_limit"
    assert outcome.turns == 2
    assert len(loop.client.calls) == 2
    assert panel.added_contents()[-1] == "⚠️ Stopped after 2 turns without a stop action."


@pytest.mark.asyncio
async def test_completion_errors_are_posted_not_stored(host: LocalWorkspaceHost, panel: FakePanel) -> None:
    loop, store = _loop(host, panel, [RateLimited()])

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "error"
    assert outcome.error == "Rate limit exceeded. Please try again later."
    assert panel.added_contents() == ["❌ Rate limit exceeded. Please try again later."]
    assert [message.role for message in store.current_chat().messages] == ["user"]


@pytest.mark.asyncio
async def test_cleared_conversation_discards_late_replies(host: LocalWorkspaceHost, panel: FakePanel) -> None:
    current = {"value": True}

    async def late_reply() -> str:
        current["value"] = False
        return "too late"

    loop, store = _loop(host, panel, [late_reply], is_current=lambda: current["value"])

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "cancelled"
    assert panel.posted == []
    assert [message.content for message in store.current_chat().messages] == ["do the thing"]


@pytest.mark.asyncio
async def test_invalid_json_is_treated_as_plain_reply(host: LocalWorkspaceHost, panel: FakePanel) -> None:
    loop, store = _loop(host, panel, [fenced("{not json")])

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "no_actions"


def test_clamp_turns_bounds_and_defaults() -> None:
    assert clamp_turns(0) == 1
    assert clamp_turns(1_000) == 100
    assert clamp_turns("7") == 7
    assert clamp_turns(None) == 25


@pytest.mark.asyncio
async def test_stop_does_not_skip_later_actions_in_its_batch(
    host: LocalWorkspaceHost, panel: FakePanel, workspace: Path
) -> None:
    replies = [
        _batch(
            {"type": "stop", "data": {}},
            {"type": "write", "data": {"path": "late.txt", "content": "written"}},
            {"type": "read", "data": {"path": "late.txt"}},
        )
    ]
    loop, store = _loop(host, panel, replies)

    outcome = await loop.run(store.current_chat())

    assert outcome.reason == "stop"
    assert (workspace / "late.txt").read_text(encoding="utf-8") == "written"
    assert len(loop.client.calls) == 1
    assert panel.added_contents()[-1] == "✅ Task completed."
