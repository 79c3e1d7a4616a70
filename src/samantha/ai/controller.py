"""Panel-facing controller tying the chat store, the loop and the hosts together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Mapping

from ..chat.chat_store import ChatStore
from ..chat.message_model import Chat, isoformat, utcnow
from ..chat.panel_html import render_panel_html
from ..chat.snapshots import RestoreError, SnapshotManager
from ..host.protocol import PanelHost, WorkspaceHost
from ..services.i18n import Translations, get_translations, next_language
from ..services.settings import Settings, SettingsStore
from .actions.executor import ActionExecutor, ExecutorSettings
from .actions.web_search import SearchProvider
from .client import ClientSettings, CompletionClient
from .context import gather_user_context
from .loop import AgentLoop, LoopOutcome, clamp_turns
from .prompts import context_message, system_prompt

__all__ = ["AssistantController"]

LOGGER = logging.getLogger(__name__)


class AssistantController:
    """Handles every inbound panel message and keeps at most one action loop running."""

    def __init__(
        self,
        *,
        settings: Settings,
        host: WorkspaceHost,
        panel: PanelHost,
        client: CompletionClient | None = None,
        executor: ActionExecutor | None = None,
        store: ChatStore | None = None,
        settings_store: SettingsStore | None = None,
        search_provider: SearchProvider | None = None,
    ) -> None:
        self._settings = settings
        self._host = host
        self._panel = panel
        self._client = client or CompletionClient(ClientSettings.from_settings(settings))
        self._executor = executor or ActionExecutor(
            host,
            settings=ExecutorSettings(
                read_max_tokens=settings.read_max_tokens,
                command_timeout=settings.command_timeout,
            ),
            search_provider=search_provider,
        )
        self._store = store or ChatStore()
        self._settings_store = settings_store
        self._snapshots = SnapshotManager(self._store, host)
        self._busy = False
        self._generation = 0
        self._active_task: asyncio.Task[LoopOutcome] | None = None
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Awaitable[None]]] = {
            "sendQuery": lambda message: self.send_query(str(message.get("value") or "")),
            "clearConversation": lambda message: self.clear_conversation(),
            "toggleLanguage": lambda message: self.toggle_language(),
            "restoreState": lambda message: self.restore_state(str(message.get("messageId") or "")),
            "createNewChat": lambda message: self.create_chat(message.get("title")),
            "switchChat": lambda message: self.switch_chat(str(message.get("chatId") or "")),
            "renameChat": lambda message: self.rename_chat(
                str(message.get("chatId") or ""), str(message.get("newTitle") or "")
            ),
            "deleteChat": lambda message: self.delete_chat(str(message.get("chatId") or "")),
        }
        host.add_change_listener(self._store.record_edit)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def store(self) -> ChatStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def translations(self) -> Translations:
        return get_translations(self._settings.language)

    # ------------------------------------------------------------------
    # Panel wiring
    # ------------------------------------------------------------------
    def attach(self) -> None:
        """Register for panel messages and render the initial view."""

        self._panel.on_panel_message(self.handle_panel_message)
        self._render()

    async def handle_panel_message(self, message: Mapping[str, Any]) -> None:
        kind = message.get("type") if isinstance(message, Mapping) else None
        handler = self._handlers.get(str(kind))
        if handler is None:
            LOGGER.warning("Ignoring unknown panel message: %s", kind)
            return
        await handler(message)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def send_query(self, query: str) -> LoopOutcome | None:
        if not query.strip():
            return None
        if self._busy:
            await self._host.show_information(self.translations.busy_notice)
            return None

        self._busy = True
        generation = self._generation
        chat = self._store.current_chat()
        try:
            user_message = self._store.append_message("user", query, chat=chat)
            self._snapshots.capture(user_message.timestamp)
            self._post({"type": "addMessage", "message": user_message.to_dict()})

            context = self._gather_context()
            self._store.replace_system_messages(
                system_prompt(
                    workspace_root=self._host.resolve_workspace_root(),
                    last_edited=self._store.last_edited,
                    last_edit_time=self._store.last_edit_time,
                ),
                chat=chat,
            )
            self._store.append_message("system", context_message(context), chat=chat)
            self._post({"type": "setLoading", "isLoading": True})

            loop = AgentLoop(
                client=self._client,
                executor=self._executor,
                store=self._store,
                host=self._host,
                post=self._post,
                translations=lambda: self.translations,
                max_turns=clamp_turns(self._settings.max_turns),
                is_current=lambda: self._generation == generation,
            )
            task = asyncio.create_task(loop.run(chat))
            self._active_task = task
            try:
                return await task
            except asyncio.CancelledError:
                if task.cancelled() and self._generation != generation:
                    LOGGER.info("Request cancelled by clearing the conversation")
                    return None
                raise
            except Exception as exc:
                LOGGER.exception("Action loop failed")
                if self._generation != generation:
                    return None
                self._post(
                    {
                        "type": "addMessage",
                        "message": {
                            "role": "assistant",
                            "content": self.translations.error_message,
                            "timestamp": isoformat(utcnow()),
                        },
                    }
                )
                return LoopOutcome(reason="error", error=str(exc) or exc.__class__.__name__)
        finally:
            if self._generation == generation:
                self._busy = False
                self._active_task = None
                self._post({"type": "setLoading", "isLoading": False})

    def cancel(self) -> None:
        """Cancel the active loop, if any; late results are discarded."""

        self._generation += 1
        task = self._active_task
        if task is not None and not task.done():
            LOGGER.debug("Cancelling active loop task")
            task.cancel()
        self._active_task = None
        self._busy = False

    async def clear_conversation(self) -> None:
        self.cancel()
        self._store.clear_conversation()
        self._post({"type": "clearConversation"})
        self._post({"type": "setLoading", "isLoading": False})

    # ------------------------------------------------------------------
    # Language
    # ------------------------------------------------------------------
    async def toggle_language(self) -> None:
        language = next_language(self._settings.language)
        self._settings = replace(self._settings, language=language)
        if self._settings_store is not None:
            try:
                self._settings_store.save(self._settings)
            except OSError as exc:
                LOGGER.warning("Failed to persist language choice: %s", exc)
        LOGGER.info("Language switched to %s", language)
        self._render()

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------
    async def restore_state(self, message_id: str) -> None:
        try:
            outcome = await self._snapshots.restore(message_id)
        except RestoreError as exc:
            LOGGER.warning("Restore failed for %s: %s", message_id, exc)
            await self._host.show_information(str(exc))
            return
        self._post({"type": "restoreConversation", "messages": [m.to_dict() for m in outcome.messages]})

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------
    async def create_chat(self, title: Any = None) -> None:
        chat = self._store.create_chat(str(title) if title else None)
        self._post({"type": "switchChat", "chatId": chat.id, "messages": []})
        self._post_chats()

    async def switch_chat(self, chat_id: str) -> None:
        chat = self._store.switch_chat(chat_id)
        if chat is None:
            LOGGER.warning("Cannot switch to unknown chat %s", chat_id)
            return
        self._post({"type": "switchChat", "chatId": chat.id, "messages": _visible(chat)})
        self._post_chats()

    async def rename_chat(self, chat_id: str, title: str) -> None:
        if not title.strip():
            return
        if self._store.rename_chat(chat_id, title.strip()) is None:
            LOGGER.warning("Cannot rename unknown chat %s", chat_id)
            return
        self._post_chats()

    async def delete_chat(self, chat_id: str) -> None:
        was_current = self._store.current_id == chat_id
        if self._store.delete_chat(chat_id) is None:
            LOGGER.warning("Cannot delete unknown chat %s", chat_id)
            return
        if was_current:
            current = self._store.current_chat()
            self._post({"type": "switchChat", "chatId": current.id, "messages": _visible(current)})
        self._post_chats()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _render(self) -> None:
        chat = self._store.current_chat()
        translations = self.translations
        self._panel.show_panel(render_panel_html(translations, chat, self._settings.language))
        self._post({"type": "updateLanguage", "translations": translations.to_dict()})
        self._post({"type": "restoreConversation", "messages": _visible(chat)})
        self._post_chats()

    def _post_chats(self) -> None:
        self._post({"type": "updateChats", "chats": self._store.chat_list(), "currentChatId": self._store.current_id})

    def _post(self, message: Mapping[str, Any]) -> None:
        try:
            self._panel.post_to_panel(message)
        except RuntimeError as exc:
            LOGGER.error("Error posting %s to panel: %s", message.get("type"), exc)

    def _gather_context(self) -> str:
        return gather_user_context(
            self._host,
            last_edited=self._store.last_edited,
            last_edit_time=self._store.last_edit_time,
        )

    async def aclose(self) -> None:
        self.cancel()
        await self._client.aclose()


def _visible(chat: Chat) -> list[dict]:
    return [message.to_dict() for message in chat.visible_messages()]
