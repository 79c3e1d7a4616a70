"""Tests covering the utilities modules."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from samantha.utils import file_io, logging as logging_utils


def test_read_text_detects_bom(tmp_path: Path) -> None:
    target = tmp_path / "utf16.txt"
    target.write_bytes("Line1\nLine2".encode("utf-16"))

    assert file_io.read_text(target) == "Line1\nLine2"


def test_read_text_falls_back_to_latin1(tmp_path: Path) -> None:
    target = tmp_path / "latin.txt"
    target.write_bytes("café".encode("latin-1"))

    assert file_io.read_text(target) == "café"


def test_write_text_creates_parents_and_keeps_newlines(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b" / "output.txt"

    returned = file_io.write_text(target, "Line1\r\nLine2")

    assert returned == target
    assert target.read_bytes() == b"Line1\r\nLine2"
    assert [path.name for path in target.parent.iterdir()] == ["output.txt"]


def test_resolve_and_display_paths(tmp_path: Path) -> None:
    assert file_io.resolve_path(tmp_path, "x/y.txt") == tmp_path / "x" / "y.txt"
    assert file_io.resolve_path(tmp_path, tmp_path / "abs.txt") == tmp_path / "abs.txt"
    assert file_io.relative_display(tmp_path, tmp_path / "x" / "y.txt") == "x/y.txt"
    assert file_io.relative_display(tmp_path / "other", tmp_path / "y.txt") == (tmp_path / "y.txt").as_posix()


def test_excerpt_truncates_and_serializes() -> None:
    assert logging_utils.excerpt(None) == "undefined"
    assert logging_utils.excerpt({"a": 1}) == '{"a": 1}'
    assert logging_utils.excerpt("x" * 10, limit=4) == "xxxx..."


def test_level_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAMANTHA_LOG_LEVEL", "debug")
    assert logging_utils.level_from_env() == logging.DEBUG
    monkeypatch.setenv("SAMANTHA_LOG_LEVEL", "30")
    assert logging_utils.level_from_env() == 30
    monkeypatch.setenv("SAMANTHA_LOG_LEVEL", "nonsense")
    assert logging_utils.level_from_env(logging.ERROR) == logging.ERROR


def test_setup_logging_writes_rotating_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    monkeypatch.setenv("SAMANTHA_LOG_DIR", str(tmp_path / "logs"))
    try:
        path = logging_utils.setup_logging(logging.INFO, console=False)
        logging.getLogger("samantha.test").info("hello log")
        for handler in root.handlers:
            handler.flush()

        assert path == tmp_path / "logs" / "samantha.log"
        assert "hello log" in path.read_text(encoding="utf-8")
        assert logging_utils.get_log_path() == path
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging_utils.setup_logging(logging.DEBUG) == path
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_logging_helpers_export_only_what_is_used() -> None:
    assert sorted(logging_utils.__all__) == ["excerpt", "get_log_path", "level_from_env", "setup_logging"]
    assert all(callable(getattr(logging_utils, name)) for name in logging_utils.__all__)
