"""HTML rendering of the chat transcript for the Qt panel."""

from __future__ import annotations

import html
from typing import Any, Iterable, Mapping

from ..services.i18n import Translations
from .message_model import Chat

__all__ = ["RESTORE_SCHEME", "render_panel_html", "render_transcript"]

RESTORE_SCHEME = "restore:"

_STYLE = """
body { font-family: sans-serif; font-size: 13px; margin: 8px; }
.message { margin: 6px 0; padding: 6px 8px; border-radius: 6px; }
.user { background: #e8f0fe; }
.assistant { background: #f4f4f4; }
.meta { color: #888; font-size: 11px; }
pre { white-space: pre-wrap; margin: 0; font-family: monospace; }
.loading { color: #888; font-style: italic; }
"""


def render_transcript(
    messages: Iterable[Mapping[str, Any]],
    translations: Translations,
    *,
    loading: bool = False,
) -> str:
    """Render visible messages as escaped HTML blocks; system messages are skipped."""

    blocks: list[str] = []
    for message in messages:
        role = str(message.get("role", "assistant"))
        if role == "system":
            continue
        content = html.escape(str(message.get("content", "")))
        timestamp = html.escape(str(message.get("timestamp", "")))
        restore = ""
        if role == "user" and timestamp:
            restore = f' <a href="{RESTORE_SCHEME}{timestamp}">{html.escape(translations.restore_button)}</a>'
        blocks.append(
            f'<div class="message {html.escape(role)}" data-id="{timestamp}">'
            f'<div class="meta">{html.escape(role)} · {timestamp}{restore}</div><pre>{content}</pre></div>'
        )
    if not blocks:
        blocks.append(f'<div class="message assistant"><pre>{html.escape(translations.welcome_message)}</pre></div>')
    if loading:
        blocks.append(f'<div class="loading">{html.escape(translations.loading_text)}</div>')
    return "\n".join(blocks)


def render_panel_html(translations: Translations, chat: Chat, language: str) -> str:
    body = render_transcript((message.to_dict() for message in chat.visible_messages()), translations)
    return (
        f'<!DOCTYPE html><html lang="{html.escape(language)}"><head><meta charset="utf-8">'
        f"<title>{html.escape(chat.title)}</title><style>{_STYLE}</style></head>"
        f"<body>{body}</body></html>"
    )
