"""Qt chat panel implementing the panel side of the message protocol.

The panel keeps its state (transcript, chat list, translations, loading flag)
in plain Python so tests can drive it without a running ``QApplication``. When
PySide6 is importable and an application instance exists, it also builds a
small widget tree: a transcript browser with per-message restore links, a chat
selector with new/rename/delete buttons, and a composer with the
send/clear/language buttons.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..host.protocol import PanelMessageHandler
from ..services.i18n import Translations, get_translations
from .panel_html import RESTORE_SCHEME, render_transcript

__all__ = ["ChatPanel"]

LOGGER = logging.getLogger(__name__)

QApplication: Any = None
QComboBox: Any = None
QHBoxLayout: Any = None
QInputDialog: Any = None
QLineEdit: Any = None
QPushButton: Any = None
QTextBrowser: Any = None
QVBoxLayout: Any = None
QWidget: Any = None

try:  # pragma: no cover - PySide6 optional in CI
    from PySide6.QtWidgets import (
        QApplication as _QtApplication,
        QComboBox as _QtComboBox,
        QHBoxLayout as _QtHBoxLayout,
        QInputDialog as _QtInputDialog,
        QLineEdit as _QtLineEdit,
        QPushButton as _QtPushButton,
        QTextBrowser as _QtTextBrowser,
        QVBoxLayout as _QtVBoxLayout,
        QWidget as _QtWidget,
    )

    QApplication = _QtApplication
    QComboBox = _QtComboBox
    QHBoxLayout = _QtHBoxLayout
    QInputDialog = _QtInputDialog
    QLineEdit = _QtLineEdit
    QPushButton = _QtPushButton
    QTextBrowser = _QtTextBrowser
    QVBoxLayout = _QtVBoxLayout
    QWidget = _QtWidget
except ImportError:  # pragma: no cover - headless installs without the ui extra
    LOGGER.debug("PySide6 not available; chat panel runs headless")


class ChatPanel:
    """Implements :class:`~samantha.host.protocol.PanelHost`."""

    def __init__(self, *, language: str = "en") -> None:
        self._handlers: List[PanelMessageHandler] = []
        self._messages: List[Dict[str, Any]] = []
        self._chats: List[Dict[str, Any]] = []
        self._current_chat_id: Optional[str] = None
        self._translations: Translations = get_translations(language)
        self._loading = False
        self._html = ""
        self._pending: set[asyncio.Future[Any]] = set()

        # Qt widgets (optional; None when headless)
        self.widget: Any = None
        self._transcript_widget: Any = None
        self._composer_widget: Any = None
        self._chat_selector: Any = None
        self._send_button: Any = None
        self._clear_button: Any = None
        self._language_button: Any = None
        self._new_chat_button: Any = None
        self._rename_button: Any = None
        self._delete_button: Any = None
        self._build_ui()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def messages(self) -> List[Dict[str, Any]]:
        return list(self._messages)

    @property
    def chats(self) -> List[Dict[str, Any]]:
        return list(self._chats)

    @property
    def current_chat_id(self) -> Optional[str]:
        return self._current_chat_id

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def html(self) -> str:
        return self._html

    @property
    def translations(self) -> Translations:
        return self._translations

    # ------------------------------------------------------------------
    # PanelHost
    # ------------------------------------------------------------------
    def show_panel(self, html: str) -> None:
        self._html = html
        if self.widget is not None:
            self.widget.show()

    def on_panel_message(self, handler: PanelMessageHandler) -> None:
        self._handlers.append(handler)

    def post_to_panel(self, message: Mapping[str, Any]) -> None:
        kind = message.get("type")
        if kind == "addMessage":
            self._add_message(dict(message.get("message") or {}))
        elif kind == "setLoading":
            self._loading = bool(message.get("isLoading"))
        elif kind == "clearConversation":
            self._messages = []
        elif kind in {"restoreConversation", "switchChat"}:
            self._messages = [dict(item) for item in message.get("messages") or []]
            if kind == "switchChat":
                self._current_chat_id = message.get("chatId")
        elif kind == "updateLanguage":
            self._apply_translations(message.get("translations") or {})
        elif kind == "updateChats":
            self._chats = [dict(item) for item in message.get("chats") or []]
            self._current_chat_id = message.get("currentChatId")
            self._refresh_chat_selector()
        else:
            LOGGER.debug("Panel ignored message type %s", kind)
            return
        self._refresh_transcript()

    # ------------------------------------------------------------------
    # User actions (what the composer and buttons emit)
    # ------------------------------------------------------------------
    def send_query(self, text: str | None = None) -> str:
        value = text if text is not None else self._composer_text()
        value = value.strip()
        if not value:
            raise ValueError("Prompt cannot be empty")
        if self._composer_widget is not None:
            self._composer_widget.clear()
        self._emit({"type": "sendQuery", "value": value})
        return value

    def clear_conversation(self) -> None:
        self._emit({"type": "clearConversation"})

    def toggle_language(self) -> None:
        self._emit({"type": "toggleLanguage"})

    def restore_state(self, message_id: str) -> None:
        self._emit({"type": "restoreState", "messageId": message_id})

    def create_new_chat(self, title: str | None = None) -> None:
        payload: Dict[str, Any] = {"type": "createNewChat"}
        if title:
            payload["title"] = title
        self._emit(payload)

    def switch_chat(self, chat_id: str) -> None:
        self._emit({"type": "switchChat", "chatId": chat_id})

    def rename_chat(self, chat_id: str, new_title: str) -> None:
        self._emit({"type": "renameChat", "chatId": chat_id, "newTitle": new_title})

    def delete_chat(self, chat_id: str) -> None:
        self._emit({"type": "deleteChat", "chatId": chat_id})

    def rename_current_chat(self, new_title: str) -> None:
        title = (new_title or "").strip()
        if title and self._current_chat_id:
            self.rename_chat(self._current_chat_id, title)

    def delete_current_chat(self) -> None:
        if self._current_chat_id:
            self.delete_chat(self._current_chat_id)

    def handle_link(self, target: str) -> None:
        """Dispatch a transcript link; ``restore:<timestamp>`` asks to restore that message."""

        if target.startswith(RESTORE_SCHEME):
            message_id = target[len(RESTORE_SCHEME) :]
            if message_id:
                self.restore_state(message_id)
            return
        LOGGER.debug("Ignoring transcript link %s", target)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _emit(self, message: Dict[str, Any]) -> None:
        for handler in list(self._handlers):
            result = handler(message)
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                self._pending.add(future)
                future.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Panel message handler failed", exc_info=exc)

    def _add_message(self, message: Dict[str, Any]) -> None:
        # A message carrying the previous message's timestamp replaces it ("Thinking..." placeholder).
        if self._messages and message.get("timestamp") and self._messages[-1].get("timestamp") == message.get("timestamp"):
            self._messages[-1] = message
        else:
            self._messages.append(message)

    def _apply_translations(self, payload: Mapping[str, Any]) -> None:
        self._translations = Translations.from_dict(payload)
        if self._send_button is not None:
            self._send_button.setText(self._translations.send_button)
            self._clear_button.setText(self._translations.clear_button)
            self._language_button.setText(self._translations.change_language_button)
            self._rename_button.setText(self._translations.rename_button)
            self._delete_button.setText(self._translations.delete_button)
            self._composer_widget.setPlaceholderText(self._translations.input_placeholder)

    def _composer_text(self) -> str:
        if self._composer_widget is None:
            return ""
        return str(self._composer_widget.text())

    def _refresh_transcript(self) -> None:
        if self._transcript_widget is None:
            return
        self._transcript_widget.setHtml(render_transcript(self._messages, self._translations, loading=self._loading))
        bar = self._transcript_widget.verticalScrollBar()
        bar.setValue(bar.maximum())

    def _refresh_chat_selector(self) -> None:
        selector = self._chat_selector
        if selector is None:
            return
        selector.blockSignals(True)
        try:
            selector.clear()
            for chat in self._chats:
                selector.addItem(str(chat.get("title", "")), chat.get("id"))
            index = selector.findData(self._current_chat_id)
            if index >= 0:
                selector.setCurrentIndex(index)
        finally:
            selector.blockSignals(False)

    def _handle_selector_changed(self, index: int) -> None:
        chat_id = self._chat_selector.itemData(index)
        if chat_id and chat_id != self._current_chat_id:
            self.switch_chat(str(chat_id))

    def _build_ui(self) -> None:
        """Instantiate Qt widgets when the runtime supports them."""

        if QApplication is None or QWidget is None:
            return
        if QApplication.instance() is None:
            return

        self.widget = QWidget()
        self.widget.setWindowTitle("Samantha")
        layout = QVBoxLayout(self.widget)
        layout.setContentsMargins(8, 8, 8, 8)

        header = QHBoxLayout()
        self._chat_selector = QComboBox(self.widget)
        self._chat_selector.currentIndexChanged.connect(self._handle_selector_changed)
        header.addWidget(self._chat_selector, 1)
        self._new_chat_button = QPushButton("+", self.widget)
        self._new_chat_button.clicked.connect(lambda: self.create_new_chat())
        header.addWidget(self._new_chat_button)
        self._rename_button = QPushButton(self._translations.rename_button, self.widget)
        self._rename_button.clicked.connect(self._handle_rename_clicked)
        header.addWidget(self._rename_button)
        self._delete_button = QPushButton(self._translations.delete_button, self.widget)
        self._delete_button.clicked.connect(self.delete_current_chat)
        header.addWidget(self._delete_button)
        layout.addLayout(header)

        self._transcript_widget = QTextBrowser(self.widget)
        self._transcript_widget.setOpenLinks(False)
        self._transcript_widget.anchorClicked.connect(lambda url: self.handle_link(url.toString()))
        layout.addWidget(self._transcript_widget, 1)

        composer = QHBoxLayout()
        self._composer_widget = QLineEdit(self.widget)
        self._composer_widget.setPlaceholderText(self._translations.input_placeholder)
        self._composer_widget.returnPressed.connect(self._handle_send_clicked)
        composer.addWidget(self._composer_widget, 1)
        self._send_button = QPushButton(self._translations.send_button, self.widget)
        self._send_button.clicked.connect(self._handle_send_clicked)
        composer.addWidget(self._send_button)
        self._clear_button = QPushButton(self._translations.clear_button, self.widget)
        self._clear_button.clicked.connect(self.clear_conversation)
        composer.addWidget(self._clear_button)
        self._language_button = QPushButton(self._translations.change_language_button, self.widget)
        self._language_button.clicked.connect(self.toggle_language)
        composer.addWidget(self._language_button)
        layout.addLayout(composer)
        self._refresh_transcript()

    def _handle_rename_clicked(self) -> None:
        current = next((chat for chat in self._chats if chat.get("id") == self._current_chat_id), None)
        title, accepted = QInputDialog.getText(
            self.widget,
            self._translations.rename_button,
            self._translations.rename_prompt,
            text=str(current.get("title", "")) if current else "",
        )
        if accepted:
            self.rename_current_chat(title)

    def _handle_send_clicked(self) -> None:
        try:
            self.send_query()
        except ValueError:
            LOGGER.debug("Ignoring empty prompt")
