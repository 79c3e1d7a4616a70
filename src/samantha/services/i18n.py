"""User-facing strings for the chat panel in every supported language."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

__all__ = ["Translations", "available_languages", "get_translations", "next_language"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Translations:
    """Bundle of panel strings; keys mirror the panel protocol's camelCase names."""

    welcome_message: str
    working_message: str
    task_completed_message: str
    error_message: str
    input_placeholder: str
    send_button: str
    clear_button: str
    change_language_button: str
    loading_text: str
    busy_notice: str
    turn_limit_message: str
    restore_button: str
    rename_button: str
    delete_button: str
    rename_prompt: str

    def to_dict(self) -> Dict[str, str]:
        return {_camel(key): value for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Translations":
        """Rebuild a bundle from its camelCase form; missing keys fall back to English."""

        defaults = asdict(_TRANSLATIONS["en"])
        values = {key: str(payload.get(_camel(key), default)) for key, default in defaults.items()}
        return cls(**values)


_TRANSLATIONS: Dict[str, Translations] = {
    "en": Translations(
        welcome_message="👋 Hi! I'm Samantha. Ask me anything about your code, or ask me to change it.",
        working_message="🤖 I'm working on this task...",
        task_completed_message="✅ Task completed.",
        error_message="❌ Something went wrong. Please try again.",
        input_placeholder="Ask a question or describe a task...",
        send_button="Send",
        clear_button="Clear",
        change_language_button="Português",
        loading_text="Thinking...",
        busy_notice="Already processing a request. Please wait or clear the conversation.",
        turn_limit_message="⚠️ Stopped after {turns} turns without a stop action.",
        restore_button="Restore",
        rename_button="Rename",
        delete_button="Delete",
        rename_prompt="New chat title:",
    ),
    "pt-br": Translations(
        welcome_message="👋 Olá! Eu sou a Samantha. Pergunte qualquer coisa sobre o seu código ou peça para alterá-lo.",
        working_message="🤖 Estou trabalhando nesta tarefa...",
        task_completed_message="✅ Tarefa concluída.",
        error_message="❌ Algo deu errado. Por favor, tente novamente.",
        input_placeholder="Faça uma pergunta ou descreva uma tarefa...",
        send_button="Enviar",
        clear_button="Limpar",
        change_language_button="English",
        loading_text="Pensando...",
        busy_notice="Já estou processando uma solicitação. Aguarde ou limpe a conversa.",
        turn_limit_message="⚠️ Parei após {turns} turnos sem uma ação de parada.",
        restore_button="Restaurar",
        rename_button="Renomear",
        delete_button="Excluir",
        rename_prompt="Novo título da conversa:",
    ),
}


def available_languages() -> tuple[str, ...]:
    return tuple(_TRANSLATIONS)


def get_translations(language: str | None) -> Translations:
    """Return the strings for ``language``, falling back to English."""

    key = (language or "").strip().lower()
    bundle = _TRANSLATIONS.get(key)
    if bundle is None:
        LOGGER.debug("No translations for '%s'; using en", language)
        return _TRANSLATIONS["en"]
    return bundle


def next_language(language: str | None) -> str:
    """Cycle to the language after ``language`` in the supported order."""

    languages = available_languages()
    key = (language or "").strip().lower()
    if key not in languages:
        return languages[0]
    return languages[(languages.index(key) + 1) % len(languages)]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
