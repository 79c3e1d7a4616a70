"""Pure text-editing operations behind the ``edit`` action."""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from ..errors import InvalidParameterError

__all__ = ["EditOutcome", "apply_edits", "unified_diff"]

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
    "y": 0,
}
_JS_REPLACEMENT = re.compile(r"\$(\$|&|\d{1,2}|<[A-Za-z_][A-Za-z0-9_]*>)")
_JS_NAMED_GROUP = re.compile(r"(?<!\\)\(\?<(?=[A-Za-z_])")
_JS_NAMED_BACKREF = re.compile(r"\\k<([A-Za-z_][A-Za-z0-9_]*)>")


@dataclass(slots=True)
class EditOutcome:
    before: str
    after: str
    operations: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def change_size(self) -> int:
        return len(self.after) - len(self.before)


def apply_edits(text: str, edits: Any) -> EditOutcome:
    """Apply ``edits`` to ``text`` in order.

    ``edits`` is either a bare string (replace the whole text) or a mapping with
    an ``operations`` list. Line numbers are 1-indexed and ranges inclusive;
    every operation sees the text produced by the previous one.
    """

    if isinstance(edits, str):
        return EditOutcome(before=text, after=edits, operations=[{"operation": "replace-all", "success": True}])
    if not isinstance(edits, Mapping):
        raise InvalidParameterError("edits must be a string or an object with an 'operations' list", parameter="edits")
    operations = edits.get("operations")
    if not isinstance(operations, Sequence) or isinstance(operations, (str, bytes)):
        raise InvalidParameterError("edits.operations must be a list", parameter="edits.operations")

    current = text
    results: List[Dict[str, Any]] = []
    for operation in operations:
        if not isinstance(operation, Mapping):
            results.append({"operation": None, "success": False, "error": "operation must be an object"})
            continue
        current, record = _apply_operation(current, operation)
        results.append(record)
    return EditOutcome(before=text, after=current, operations=results)


def unified_diff(before: str, after: str, path: str) -> str:
    diff = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(diff)


def _apply_operation(text: str, operation: Mapping[str, Any]) -> tuple[str, Dict[str, Any]]:
    kind = operation.get("type")
    if kind == "replace":
        if operation.get("startLine") and operation.get("endLine"):
            start, end = _line_range(operation)
            new_text = str(operation.get("newText") or "")
            lines = text.split("\n")
            updated = lines[: max(0, start - 1)] + [new_text] + lines[min(len(lines), end):]
            return "\n".join(updated), {"operation": "replace", "startLine": start, "endLine": end, "success": True}
        if operation.get("pattern"):
            return _replace_pattern(text, operation)
    elif kind == "insert":
        insert_text = str(operation.get("text") or "")
        if operation.get("line"):
            line = _as_int(operation.get("line"), "line")
            lines = text.split("\n")
            index = min(len(lines), max(0, line - 1))
            lines.insert(index, insert_text)
            return "\n".join(lines), {"operation": "insert", "line": line, "success": True}
        position = operation.get("position")
        if position == "start":
            return insert_text + text, {"operation": "insert", "position": "start", "success": True}
        if position == "end":
            return text + insert_text, {"operation": "insert", "position": "end", "success": True}
    elif kind == "delete":
        if operation.get("startLine") and operation.get("endLine"):
            start, end = _line_range(operation)
            lines = text.split("\n")
            updated = lines[: max(0, start - 1)] + lines[min(len(lines), end):]
            return "\n".join(updated), {"operation": "delete", "startLine": start, "endLine": end, "success": True}
    return text, {
        "operation": kind,
        "success": False,
        "error": f"Operation {kind!r} is missing required fields or is not supported",
    }


def _replace_pattern(text: str, operation: Mapping[str, Any]) -> tuple[str, Dict[str, Any]]:
    pattern = str(operation["pattern"])
    source = _python_pattern(pattern)
    flags_text = str(operation.get("flags") or "g")
    flags = 0
    for flag in flags_text:
        if flag == "g":
            continue
        if flag not in _FLAG_MAP:
            raise InvalidParameterError(f"Unsupported regex flag: {flag}", parameter="flags")
        flags |= _FLAG_MAP[flag]
    try:
        regex = re.compile(source, flags)
    except re.error as exc:
        raise InvalidParameterError(f"Invalid pattern: {exc}", parameter="pattern") from exc

    replacement = str(operation.get("replacement") or "")
    count = 0 if "g" in flags_text else 1
    updated, occurrences = regex.subn(lambda match: _expand(match, replacement), text, count=count)
    return updated, {"operation": "replace", "pattern": pattern, "occurrences": occurrences, "success": True}


def _python_pattern(pattern: str) -> str:
    """Translate JavaScript named groups (``(?<name>``, ``\\k<name>``) into Python syntax."""

    pattern = _JS_NAMED_GROUP.sub("(?P<", pattern)
    return _JS_NAMED_BACKREF.sub(lambda match: f"(?P={match.group(1)})", pattern)


def _expand(match: re.Match[str], replacement: str) -> str:
    """Expand ``$1``, ``$&``, ``$<name>`` and ``$$`` the way JavaScript replacement strings do."""

    def substitute(token: re.Match[str]) -> str:
        ref = token.group(1)
        if ref == "$":
            return "$"
        if ref == "&":
            return match.group(0)
        if ref.startswith("<"):
            name = ref[1:-1]
            if name in match.re.groupindex:
                return match.group(name) or ""
            return token.group(0)
        index = int(ref)
        if 0 < index <= match.re.groups:
            return match.group(index) or ""
        return token.group(0)

    return _JS_REPLACEMENT.sub(substitute, replacement)


def _line_range(operation: Mapping[str, Any]) -> tuple[int, int]:
    return _as_int(operation.get("startLine"), "startLine"), _as_int(operation.get("endLine"), "endLine")


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidParameterError(f"{name} must be an integer", parameter=name) from exc
