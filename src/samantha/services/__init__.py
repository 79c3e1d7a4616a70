"""Service layer helpers (settings, translations)."""

from .i18n import Translations, available_languages, get_translations, next_language
from .settings import SUPPORTED_LANGUAGES, SecretVault, Settings, SettingsStore, redact_secret

__all__ = [
    "SUPPORTED_LANGUAGES",
    "SecretVault",
    "Settings",
    "SettingsStore",
    "Translations",
    "available_languages",
    "get_translations",
    "next_language",
    "redact_secret",
]
