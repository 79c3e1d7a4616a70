"""Tests for action batch extraction."""

from __future__ import annotations

import json

from samantha.ai.actions.models import ActionType
from samantha.ai.actions.parser import extract_action_batch, find_json_payload

from helpers import fenced


def test_extracts_first_fenced_json_block() -> None:
    reply = fenced('{"thoughts": "look", "actions": [{"type": "read", "data": {"path": "a.py"}}]}')
    reply += '\n```json\n{"actions": [{"type": "stop"}]}\n```'

    batch = extract_action_batch(reply)

    assert batch is not None
    assert batch.thoughts == "look"
    assert [action.type for action in batch.actions] == ["read"]
    assert batch.actions[0].data == {"path": "a.py"}
    assert not batch.has_stop


def test_falls_back_to_whole_reply_json() -> None:
    reply = json.dumps({"actions": [{"type": "stop", "data": {}}]})

    batch = extract_action_batch(reply)

    assert batch is not None
    assert batch.has_stop
    assert batch.actions[0].kind is ActionType.STOP


def test_plain_prose_yields_no_batch() -> None:
    assert extract_action_batch("Sure, the bug is on line 3.") is None


def test_invalid_json_in_fence_is_ignored() -> None:
    assert extract_action_batch("```json\n{not json}\n```") is None


def test_object_without_actions_array_is_ignored() -> None:
    assert extract_action_batch('```json\n{"thoughts": "only thinking"}\n```') is None
    assert extract_action_batch('```json\n{"actions": "read"}\n```') is None
    assert extract_action_batch('```json\n[1, 2, 3]\n```') is None


def test_unknown_action_type_survives_parsing() -> None:
    batch = extract_action_batch(fenced('{"actions": [{"type": "teleport", "data": 1}]}'))

    assert batch is not None
    assert batch.actions[0].type == "teleport"
    assert batch.actions[0].kind is None


def test_find_json_payload_without_fence_returns_text() -> None:
    assert find_json_payload('{"a": 1}') == '{"a": 1}'
    assert find_json_payload("```json\n  {\"a\": 1}  \n```") == '{"a": 1}'
