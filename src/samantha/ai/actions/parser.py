"""Extracts the JSON action batch from an assistant reply."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from jsonschema import Draft7Validator

from .models import Action, ActionBatch

__all__ = ["ACTION_BATCH_SCHEMA", "extract_action_batch", "find_json_payload"]

LOGGER = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")

ACTION_BATCH_SCHEMA: Mapping[str, Any] = {
    "type": "object",
    "required": ["actions"],
    "properties": {
        "thoughts": {"type": "string"},
        "actions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type"],
                "properties": {"type": {"type": "string"}},
            },
        },
    },
}
_VALIDATOR = Draft7Validator(ACTION_BATCH_SCHEMA)


def find_json_payload(text: str) -> str:
    """Return the first ```json fenced block, or the whole reply when none exists."""

    match = _FENCED_JSON.search(text or "")
    if match:
        return match.group(1)
    return text or ""


def extract_action_batch(text: str) -> ActionBatch | None:
    """Parse ``text`` into an :class:`ActionBatch`.

    Returns ``None`` when the reply carries no valid batch; the reason is
    logged and the reply is then treated as plain prose.
    """

    raw = find_json_payload(text)
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        LOGGER.debug("Reply contains no parseable action JSON: %s", exc)
        return None

    issues = sorted(_VALIDATOR.iter_errors(payload), key=lambda issue: list(issue.absolute_path))
    if issues:
        first = issues[0]
        path = "/".join(str(part) for part in first.absolute_path)
        LOGGER.warning("Ignoring malformed action batch (%s): %s", path or "<root>", first.message)
        return None

    thoughts = payload.get("thoughts")
    actions = [Action.from_dict(item) for item in payload["actions"]]
    batch = ActionBatch(thoughts=thoughts if isinstance(thoughts, str) else "", actions=actions)
    LOGGER.info("Parsed action batch with %s action(s): %s", len(actions), [a.type for a in actions])
    return batch
