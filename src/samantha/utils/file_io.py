"""File IO helpers shared by the workspace host and the action executor."""

from __future__ import annotations

import codecs
import locale
import os
import tempfile
from pathlib import Path

__all__ = [
    "read_text",
    "write_text",
    "resolve_path",
    "looks_binary",
    "relative_display",
]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
}
_BINARY_SNIFF_BYTES = 8_192


def read_text(path: Path | str, *, encoding: str | None = None, errors: str = "strict") -> str:
    """Read a text file, detecting BOMs and falling back through common encodings."""

    raw = Path(path).read_bytes()
    detected = encoding or _detect_encoding(raw)
    text = raw.decode(detected, errors=errors)
    return text[1:] if text.startswith("\ufeff") else text


def write_text(path: Path | str, content: str, *, encoding: str = "utf-8", atomic: bool = True) -> Path:
    """Write ``content`` to ``path``, creating parent directories as needed.

    Newlines are written verbatim; the model decides the line endings of the
    files it produces.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        with target.open("w", encoding=encoding, newline="") as handle:
            handle.write(content)
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def resolve_path(root: Path | None, path: Path | str) -> Path:
    """Resolve ``path`` against the workspace ``root`` unless it is already absolute."""

    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    base = root if root is not None else Path.cwd()
    return base / candidate


def relative_display(root: Path | None, path: Path) -> str:
    """Return ``path`` relative to ``root`` in POSIX form when possible."""

    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def looks_binary(path: Path) -> bool:
    """Cheap NUL-byte sniff used to skip binary files during text search."""

    try:
        with path.open("rb") as handle:
            chunk = handle.read(_BINARY_SNIFF_BYTES)
    except OSError:
        return True
    return b"\x00" in chunk


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding

    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except UnicodeDecodeError:
            continue
    return "utf-8"
