"""Async completion client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..services.settings import Settings
from .errors import (
    ApiStatusError,
    AuthenticationFailed,
    MalformedResponse,
    MissingApiKey,
    RateLimited,
    ServerError,
    TransportError,
)

__all__ = ["ClientSettings", "CompletionClient"]

LOGGER = logging.getLogger(__name__)
_MESSAGE_KEYS = ("role", "content")


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the completion client."""

    base_url: str
    api_key: str
    model: str
    max_tokens: int = 20_480
    temperature: float = 0.6
    top_p: float = 1.0
    top_k: int = 40
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            top_p=settings.top_p,
            top_k=settings.top_k,
            presence_penalty=settings.presence_penalty,
            frequency_penalty=settings.frequency_penalty,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers or {}),
            debug_logging=settings.debug_logging,
        )


class CompletionClient:
    """Sends chat transcripts to ``{base_url}/chat/completions`` and returns the reply text.

    Every failure surfaces as a :class:`~samantha.ai.errors.CompletionError`
    subclass whose message is safe to show in the chat. Cancelling the awaiting
    task aborts the in-flight HTTP request.
    """

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | Any | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(self, messages: Iterable[Mapping[str, Any]]) -> str:
        """Return the first choice's content for ``messages``."""

        payload = self._build_chat_payload(self._coerce_messages(messages))
        LOGGER.debug(
            "Requesting chat completion via %s with %s message(s)",
            self._settings.model,
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        client = self._get_client()
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await client.chat.completions.create(**payload)
        except AuthenticationError as exc:
            raise AuthenticationFailed(status_code=401) from exc
        except RateLimitError as exc:
            raise RateLimited(status_code=429) from exc
        except InternalServerError as exc:
            raise ServerError(status_code=exc.status_code) from exc
        except APIStatusError as exc:
            if exc.status_code >= 500:
                raise ServerError(status_code=exc.status_code) from exc
            raise ApiStatusError(_status_message(exc), status_code=exc.status_code) from exc
        except (APIConnectionError, httpx.HTTPError) as exc:
            raise TransportError(f"Network error: {exc}") from exc
        return self._extract_content(response)

    def _get_client(self) -> Any:
        if self._client is None:
            if not (self._settings.api_key or "").strip():
                raise MissingApiKey()
            self._client = self._build_client(self._settings)
        return self._client

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIConnectionError,
                    RateLimitError,
                    InternalServerError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _coerce_messages(self, messages: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        normalized: List[Dict[str, Any]] = []
        for message in messages:
            if hasattr(message, "to_dict") and not isinstance(message, Mapping):
                message = message.to_dict()
            normalized.append({key: message[key] for key in _MESSAGE_KEYS})
        if not normalized:
            raise ValueError("At least one message is required to request a completion")
        return normalized

    def _build_chat_payload(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        settings = self._settings
        return {
            "model": settings.model,
            "messages": messages,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "top_p": settings.top_p,
            "presence_penalty": settings.presence_penalty,
            "frequency_penalty": settings.frequency_penalty,
            "extra_body": {"top_k": settings.top_k},
        }

    @staticmethod
    def _extract_content(response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise MalformedResponse()
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise MalformedResponse()
        return content

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        if self._client is None:
            return
        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def _status_message(exc: APIStatusError) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return f"API Error: {error['message']}"
        if isinstance(error, str) and error:
            return f"API Error: {error}"
        if body.get("message"):
            return f"API Error: {body['message']}"
    return f"API Error: {exc.status_code} {getattr(exc, 'message', '') or ''}".strip()
