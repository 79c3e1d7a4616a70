"""Error types raised by the completion client and the action executor.

Completion errors carry the message shown to the user in the chat transcript.
Action errors serialize to the ``{"error": ...}`` payload stored on the
failing action so the model can read what went wrong on the next turn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

__all__ = [
    "CompletionError",
    "AuthenticationFailed",
    "RateLimited",
    "ServerError",
    "ApiStatusError",
    "MalformedResponse",
    "TransportError",
    "MissingApiKey",
    "ErrorCode",
    "ActionError",
    "UnsupportedLanguageError",
    "UnsupportedActionError",
    "CommandFailedError",
    "InvalidParameterError",
]


# -----------------------------------------------------------------------------
# Completion errors
# -----------------------------------------------------------------------------


class CompletionError(Exception):
    """Base class for failures talking to the chat-completion endpoint."""

    default_message: ClassVar[str] = "The completion request failed."

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class AuthenticationFailed(CompletionError):
    default_message = "Invalid API key. Please check your API key in settings."


class RateLimited(CompletionError):
    default_message = "Rate limit exceeded. Please try again later."


class ServerError(CompletionError):
    default_message = "Server error. Please try again later."


class ApiStatusError(CompletionError):
    default_message = "API request failed."


class MalformedResponse(CompletionError):
    default_message = "Invalid response format from API"


class TransportError(CompletionError):
    default_message = "Network error while contacting the API."


class MissingApiKey(CompletionError):
    default_message = "No API key configured. Set one in settings or via SAMANTHA_API_KEY."


# -----------------------------------------------------------------------------
# Action errors
# -----------------------------------------------------------------------------


class ErrorCode:
    """Machine-readable codes attached to action errors."""

    UNSUPPORTED_LANGUAGE = "unsupported_language"
    UNSUPPORTED_ACTION = "unsupported_action"
    COMMAND_FAILED = "command_failed"
    INVALID_PARAMETER = "invalid_parameter"
    INTERNAL_ERROR = "internal_error"


@dataclass
class ActionError(Exception):
    """Base exception for action failures; ``to_dict`` is what lands on the action."""

    message: str
    error_code: str = ErrorCode.INTERNAL_ERROR
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class UnsupportedLanguageError(ActionError):
    message: str = ""
    error_code: str = ErrorCode.UNSUPPORTED_LANGUAGE
    language: str = ""
    known: bool = False

    def __post_init__(self) -> None:
        if not self.message:
            if self.known:
                self.message = f"Execution of {self.language} is not supported"
            else:
                self.message = f"Unsupported language: {self.language}"
        super().__post_init__()


@dataclass
class UnsupportedActionError(ActionError):
    message: str = ""
    error_code: str = ErrorCode.UNSUPPORTED_ACTION
    action_type: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"Unknown action type: {self.action_type}"
        super().__post_init__()


@dataclass
class CommandFailedError(ActionError):
    """A shell command or snippet exited non-zero or timed out."""

    message: str = "Command failed"
    error_code: str = ErrorCode.COMMAND_FAILED
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.stdout:
            result["stdout"] = self.stdout
        if self.stderr:
            result["stderr"] = self.stderr
        return result


@dataclass
class InvalidParameterError(ActionError):
    message: str = "Invalid action parameters"
    error_code: str = ErrorCode.INVALID_PARAMETER
    parameter: str | None = None

    def __post_init__(self) -> None:
        if self.parameter:
            self.details.setdefault("parameter", self.parameter)
        super().__post_init__()
