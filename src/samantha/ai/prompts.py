"""Prompt templates for the action loop."""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

__all__ = ["system_prompt", "context_message", "updated_context_message", "action_results_message"]


_ACTION_REFERENCE = """\
When you need to perform actions, respond with JSON in the following format:
```json
{
  "thoughts": "Your reasoning about what needs to be done",
  "actions": [
    {
      "type": "read|write|search|command|execute|analyze|browse|edit|stop",
      "data": { ... action specific data ... }
    }
  ]
}
```

Action types and their data:
- read: { "path": "relative/or/absolute/path" }
- write: { "path": "relative/or/absolute/path", "content": "file content" }
- search: { "type": "files", "pattern": "glob pattern" } or { "type": "text", "text": "search text" }
- command: { "command": "command string to execute in the workspace shell" }
- execute: { "language": "js|python|bash|...", "code": "code to execute" }
- analyze: { "code": "code to analyze", "question": "what you want to analyze" }
- browse: { "query": "search query", "numResults": 5 } (free web search, numResults is optional)
- edit: {
    "path": "relative/or/absolute/path",
    "edits": {
      "operations": [
        { "type": "replace", "startLine": 10, "endLine": 15, "newText": "new code here" },
        { "type": "replace", "pattern": "oldFunction\\\\(\\\\)", "replacement": "newFunction()", "flags": "g" },
        { "type": "insert", "line": 20, "text": "new line of code here" },
        { "type": "insert", "position": "start", "text": "// Header comment" },
        { "type": "insert", "position": "end", "text": "// Footer comment" },
        { "type": "delete", "startLine": 25, "endLine": 30 }
      ]
    }
  } (edit specific parts of an existing file; line numbers are 1-indexed and inclusive)
- stop: {} (use this to indicate you're done with the task and no more actions are needed)
"""

_CONTEXT_NOTE = """\
CONTEXTUAL UNDERSTANDING:
Before every response, the user's current context is gathered automatically, including:
- Currently open files
- Current editor selection
- Recent edits
- Terminals (if available)

By default, you will continue to take actions in a loop until you decide to stop with the 'stop' action type.
Always wrap your JSON in markdown code blocks with the json language specifier.
When executing code or commands that might be potentially harmful, explain what the code does before executing it.
"""

_NEXT_STEP_GUIDANCE = """\
Based on these results, determine what to do next. You can:
1. Continue with more actions by returning a new JSON with "actions" array
2. Stop the iteration by including an action with "type": "stop" if the task is completed
3. Provide a final response to the user with your findings

Please analyze these results and respond appropriately."""


def system_prompt(
    *,
    workspace_root: Path | None,
    last_edited: Path | None = None,
    last_edit_time: datetime | None = None,
    platform: str | None = None,
) -> str:
    """Describe the environment and the action protocol to the model."""

    lines = [
        "You are a coding assistant with agency capabilities. You can perform actions on the user's workspace.",
        "",
        "ENVIRONMENT CONTEXT:",
        f"- OS: {platform or sys.platform}",
        f"- Workspace: {workspace_root if workspace_root is not None else 'No workspace open'}",
        f"- Last edited file: {last_edited if last_edited is not None else 'None'}",
    ]
    if last_edited is not None and last_edit_time is not None:
        lines.append(f"- Last edit: {last_edit_time.strftime('%H:%M:%S')}")
    return "\n".join(lines) + "\n\n" + _ACTION_REFERENCE + "\n" + _CONTEXT_NOTE


def context_message(context: str) -> str:
    return f"Current user context:\n{context}"


def updated_context_message(context: str) -> str:
    return f"Updated context after actions:\n{context}"


def action_results_message(results: Sequence[Any]) -> str:
    serialized = json.dumps(
        [item.to_dict() if hasattr(item, "to_dict") else item for item in results],
        indent=2,
        ensure_ascii=False,
        default=str,
    )
    return (
        "The assistant has completed the actions. Here are the results:\n"
        f"```json\n{serialized}\n```\n\n{_NEXT_STEP_GUIDANCE}"
    )
