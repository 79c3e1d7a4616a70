"""Tests for the completion client wrapper."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List

import httpx
import pytest
from openai import APIConnectionError, AuthenticationError, BadRequestError, InternalServerError, RateLimitError

from samantha.ai.client import ClientSettings, CompletionClient
from samantha.ai.errors import (
    ApiStatusError,
    AuthenticationFailed,
    MalformedResponse,
    MissingApiKey,
    RateLimited,
    ServerError,
    TransportError,
)
from samantha.services.settings import Settings

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def _response(content: Any) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(cls: type, status: int, body: Any = None) -> Exception:
    return cls("boom", response=httpx.Response(status, request=_REQUEST), body=body)


class _FakeCompletions:
    def __init__(self, outcomes: List[Any]) -> None:
        self.outcomes = outcomes
        self.calls: List[dict] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _FakeOpenAI:
    def __init__(self, *outcomes: Any) -> None:
        self.completions = _FakeCompletions(list(outcomes))
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _settings(**overrides: Any) -> ClientSettings:
    base = ClientSettings(
        base_url="https://api.example.com/v1",
        api_key="key",
        model="test-model",
        retry_min_seconds=0.0,
        retry_max_seconds=0.0,
    )
    for key, value in overrides.items():
        setattr(base, key, value)
    return base


@pytest.mark.asyncio
async def test_complete_sends_sampling_parameters_and_strips_messages() -> None:
    fake = _FakeOpenAI(_response("hello"))
    client = CompletionClient(_settings(top_k=12), client=fake)

    reply = await client.complete([{"role": "user", "content": "hi", "timestamp": "2024"}])

    assert reply == "hello"
    call = fake.completions.calls[0]
    assert call["model"] == "test-model"
    assert call["messages"] == [{"role": "user", "content": "hi"}]
    assert call["max_tokens"] == 20_480
    assert call["temperature"] == 0.6
    assert call["top_p"] == 1.0
    assert call["extra_body"] == {"top_k": 12}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "expected", "message"),
    [
        (_status_error(AuthenticationError, 401), AuthenticationFailed, "Invalid API key. Please check your API key in settings."),
        (_status_error(RateLimitError, 429), RateLimited, "Rate limit exceeded. Please try again later."),
        (_status_error(InternalServerError, 503), ServerError, "Server error. Please try again later."),
        (
            _status_error(BadRequestError, 400, {"error": {"message": "context too long"}}),
            ApiStatusError,
            "API Error: context too long",
        ),
    ],
)
async def test_status_errors_map_to_user_messages(error: Exception, expected: type, message: str) -> None:
    client = CompletionClient(_settings(), client=_FakeOpenAI(error))

    with pytest.raises(expected) as info:
        await client.complete([{"role": "user", "content": "hi"}])

    assert info.value.message == message


@pytest.mark.asyncio
async def test_connection_errors_become_transport_errors() -> None:
    client = CompletionClient(_settings(), client=_FakeOpenAI(APIConnectionError(request=_REQUEST)))

    with pytest.raises(TransportError):
        await client.complete([{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_transient_errors_are_retried_up_to_max_retries() -> None:
    fake = _FakeOpenAI(_status_error(RateLimitError, 429), _response("finally"))
    client = CompletionClient(_settings(max_retries=2), client=fake)

    assert await client.complete([{"role": "user", "content": "hi"}]) == "finally"
    assert len(fake.completions.calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [SimpleNamespace(choices=[]), _response(None)])
async def test_malformed_responses_are_rejected(response: Any) -> None:
    client = CompletionClient(_settings(), client=_FakeOpenAI(response))

    with pytest.raises(MalformedResponse) as info:
        await client.complete([{"role": "user", "content": "hi"}])

    assert info.value.message == "Invalid response format from API"


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_request() -> None:
    client = CompletionClient(_settings(api_key="  "))

    with pytest.raises(MissingApiKey):
        await client.complete([{"role": "user", "content": "hi"}])


@pytest.mark.asyncio
async def test_aclose_closes_underlying_client() -> None:
    fake = _FakeOpenAI()
    client = CompletionClient(_settings(), client=fake)

    await client.aclose()

    assert fake.closed is True


def test_client_settings_from_settings() -> None:
    settings = Settings(api_key="abc", model="m", top_k=7, default_headers={"X-Test": "1"})

    client_settings = ClientSettings.from_settings(settings)

    assert client_settings.api_key == "abc"
    assert client_settings.model == "m"
    assert client_settings.top_k == 7
    assert client_settings.default_headers == {"X-Test": "1"}
