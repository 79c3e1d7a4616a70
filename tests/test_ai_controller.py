"""Tests for the panel-facing assistant controller."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from samantha.ai.actions.executor import ActionExecutor
from samantha.ai.controller import AssistantController
from samantha.host.local import LocalWorkspaceHost
from samantha.services.settings import Settings, SettingsStore

from helpers import FakeCompletionClient, FakePanel, FakeSearchProvider, fenced


def _controller(
    host: LocalWorkspaceHost,
    panel: FakePanel,
    settings: Settings,
    replies: list[Any],
    **kwargs: Any,
) -> AssistantController:
    return AssistantController(
        settings=settings,
        host=host,
        panel=panel,
        client=FakeCompletionClient(replies),
        executor=ActionExecutor(host, search_provider=FakeSearchProvider()),
        **kwargs,
    )


def test_attach_renders_panel_and_registers_handler(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, [])

    controller.attach()

    assert panel.handlers == [controller.handle_panel_message]
    assert panel.html is not None and "Samantha" in panel.html
    assert [message["type"] for message in panel.posted] == ["updateLanguage", "restoreConversation", "updateChats"]


@pytest.mark.asyncio
async def test_send_query_runs_loop_and_toggles_loading(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, ["Hello there."])

    outcome = await controller.handle_panel_message({"type": "sendQuery", "value": "hi"})

    assert outcome is None
    assert panel.added_contents() == ["hi", "Thinking...", "Hello there."]
    loading = [message["isLoading"] for message in panel.of_type("setLoading")]
    assert loading[0] is True and loading[-1] is False
    assert controller.busy is False
    sent = controller._client.calls[0]
    assert [message["role"] for message in sent] == ["user", "system", "system"]
    assert sent[1]["content"].startswith("You are a coding assistant")
    assert sent[2]["content"].startswith("Current user context:\n")


@pytest.mark.asyncio
async def test_system_prompt_is_replaced_on_each_query(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, ["one", "two"])

    await controller.send_query("first")
    await controller.send_query("second")

    prompts = [m for m in controller.store.current_chat().messages if m.content.startswith("You are a coding")]
    assert len(prompts) == 1


@pytest.mark.asyncio
async def test_blank_queries_are_ignored(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, [])

    assert await controller.send_query("   ") is None
    assert panel.posted == []


@pytest.mark.asyncio
async def test_busy_controller_rejects_second_query_and_clear_cancels(host, panel, settings) -> None:
    release = asyncio.Event()

    async def slow_reply() -> str:
        await release.wait()
        return "late"

    controller = _controller(host, panel, settings, [slow_reply])
    first = asyncio.create_task(controller.send_query("long task"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert controller.busy is True

    await controller.send_query("another")
    assert host.notices == ["Already processing a request. Please wait or clear the conversation."]

    await controller.clear_conversation()
    assert await first is None
    assert controller.busy is False
    assert "late" not in panel.added_contents()
    assert panel.posted[-2:] == [{"type": "clearConversation"}, {"type": "setLoading", "isLoading": False}]
    assert controller.store.current_chat().visible_messages() == []


@pytest.mark.asyncio
async def test_toggle_language_persists_and_rerenders(host, panel, settings, tmp_path: Path) -> None:
    settings_store = SettingsStore(tmp_path / "settings.json")
    controller = _controller(host, panel, settings, [], settings_store=settings_store)

    await controller.handle_panel_message({"type": "toggleLanguage"})

    assert controller.settings.language == "pt-br"
    assert json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))["language"] == "pt-br"
    update = panel.of_type("updateLanguage")[-1]
    assert update["translations"]["sendButton"] == "Enviar"
    assert 'lang="pt-br"' in panel.html


@pytest.mark.asyncio
async def test_restore_state_rolls_back_files_and_transcript(host, panel, settings, workspace: Path) -> None:
    (workspace / "main.py").write_text("original", encoding="utf-8")
    host.open_document("main.py")
    reply = fenced(
        json.dumps(
            {
                "thoughts": "rewrite",
                "actions": [{"type": "write", "data": {"path": "main.py", "content": "changed"}}, {"type": "stop"}],
            }
        )
    )
    controller = _controller(host, panel, settings, [reply])

    await controller.send_query("rewrite main")
    assert (workspace / "main.py").read_text(encoding="utf-8") == "changed"
    user_id = panel.of_type("addMessage")[0]["message"]["timestamp"]

    await controller.handle_panel_message({"type": "restoreState", "messageId": user_id})

    assert (workspace / "main.py").read_text(encoding="utf-8") == "original"
    restored = panel.of_type("restoreConversation")[-1]["messages"]
    assert [message["content"] for message in restored] == ["rewrite main"]


@pytest.mark.asyncio
async def test_restore_unknown_message_shows_notice(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, [])

    await controller.restore_state("nope")

    assert host.notices == ["No previous state found for this message"]
    assert panel.of_type("restoreConversation") == []


@pytest.mark.asyncio
async def test_chat_management_messages(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, ["reply"])
    await controller.send_query("in first chat")
    first_id = controller.store.current_id

    await controller.handle_panel_message({"type": "createNewChat"})
    second_id = controller.store.current_id
    assert second_id != first_id
    assert panel.of_type("switchChat")[-1] == {"type": "switchChat", "chatId": second_id, "messages": []}

    await controller.handle_panel_message({"type": "renameChat", "chatId": second_id, "newTitle": " Notes "})
    chats = panel.of_type("updateChats")[-1]
    assert [chat["title"] for chat in chats["chats"]] == ["Chat 1", "Notes"]
    assert chats["currentChatId"] == second_id

    await controller.handle_panel_message({"type": "switchChat", "chatId": first_id})
    switched = panel.of_type("switchChat")[-1]
    assert [message["content"] for message in switched["messages"]] == ["in first chat", "reply"]

    await controller.handle_panel_message({"type": "deleteChat", "chatId": first_id})
    assert controller.store.current_id == second_id
    assert panel.of_type("switchChat")[-1]["chatId"] == second_id
    assert [chat["id"] for chat in panel.of_type("updateChats")[-1]["chats"]] == [second_id]


@pytest.mark.asyncio
async def test_unknown_panel_messages_are_ignored(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, [])

    await controller.handle_panel_message({"type": "selfDestruct"})

    assert panel.posted == []


@pytest.mark.asyncio
async def test_aclose_closes_client(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, [])

    await controller.aclose()

    assert controller._client.closed is True


class _ExplodingExecutor:
    async def execute(self, actions: Any) -> Any:
        raise RuntimeError("executor crashed")


@pytest.mark.asyncio
async def test_unexpected_loop_failure_posts_error_message(host, panel, settings) -> None:
    reply = fenced(json.dumps({"actions": [{"type": "read", "data": {"path": "a.txt"}}]}))
    controller = AssistantController(
        settings=settings,
        host=host,
        panel=panel,
        client=FakeCompletionClient([reply]),
        executor=_ExplodingExecutor(),
    )

    outcome = await controller.send_query("read it")

    assert outcome is not None and outcome.reason == "error"
    assert outcome.error == "executor crashed"
    assert panel.added_contents()[-1] == "❌ Something went wrong. Please try again."
    assert panel.posted[-1] == {"type": "setLoading", "isLoading": False}
    assert controller.busy is False


@pytest.mark.asyncio
async def test_toggle_language_keeps_stored_messages(host, panel, settings) -> None:
    controller = _controller(host, panel, settings, ["Hello there."])
    await controller.send_query("hi")
    before = [(m.role, m.content, m.timestamp) for m in controller.store.current_chat().messages]

    await controller.toggle_language()

    after = [(m.role, m.content, m.timestamp) for m in controller.store.current_chat().messages]
    assert after == before
    restored = panel.of_type("restoreConversation")[-1]["messages"]
    assert [message["content"] for message in restored] == ["hi", "Hello there."]
