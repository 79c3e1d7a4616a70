"""Logging helpers for the Samantha assistant."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_log_path", "level_from_env", "excerpt"]

_DEFAULT_LOG_DIR = Path.home() / ".samantha" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "httpx", "httpcore", "openai")
_LEVEL_ENV = "SAMANTHA_LOG_LEVEL"
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating agent log plus an optional console stream.

    ``level`` defaults to ``SAMANTHA_LOG_LEVEL`` (or INFO). Repeated calls are
    no-ops unless ``force`` is set, which lets the launcher bump the level once
    settings have been read.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    resolved_level = level_from_env() if level is None else level
    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "samantha.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(resolved_level)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=resolved_level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _quiet_transport_loggers(resolved_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def level_from_env(default: int = logging.INFO) -> int:
    """Resolve a level from ``SAMANTHA_LOG_LEVEL`` (name or number)."""

    raw = (os.environ.get(_LEVEL_ENV) or "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    resolved = logging.getLevelName(raw.upper())
    return resolved if isinstance(resolved, int) else default


def excerpt(value: object, limit: int = 100) -> str:
    """Render ``value`` as one log-friendly string capped at ``limit`` characters."""

    if value is None:
        return "undefined"
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = "[unserializable]"
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("SAMANTHA_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _quiet_transport_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
