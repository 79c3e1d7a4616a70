"""Shared fakes for the test suite."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping

from samantha.ai.actions.web_search import SearchResult


class FakeCompletionClient:
    """Returns canned replies (or raises canned errors) in order."""

    def __init__(self, replies: Iterable[Any]) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[List[dict]] = []
        self.closed = False

    async def complete(self, messages: Iterable[Mapping[str, Any]]) -> str:
        self.calls.append([dict(message) for message in messages])
        if not self.replies:
            raise AssertionError("FakeCompletionClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply()
        return reply

    async def aclose(self) -> None:
        self.closed = True


class FakePanel:
    """Records every message posted to the panel."""

    def __init__(self) -> None:
        self.posted: List[dict] = []
        self.html: str | None = None
        self.handlers: list = []

    def show_panel(self, html: str) -> None:
        self.html = html

    def post_to_panel(self, message: Mapping[str, Any]) -> None:
        self.posted.append(dict(message))

    def on_panel_message(self, handler) -> None:
        self.handlers.append(handler)

    def of_type(self, kind: str) -> List[dict]:
        return [message for message in self.posted if message.get("type") == kind]

    def added_contents(self) -> List[str]:
        return [message["message"]["content"] for message in self.of_type("addMessage")]


class FakeSearchProvider:
    def __init__(self, results: Iterable[SearchResult] = (), error: Exception | None = None) -> None:
        self.results = list(results)
        self.error = error
        self.queries: List[tuple[str, int]] = []

    async def search(self, query: str, num_results: int) -> List[SearchResult]:
        self.queries.append((query, num_results))
        if self.error is not None:
            raise self.error
        return self.results[:num_results]


def fenced(payload: str) -> str:
    return f"Here is my plan.\n```json\n{payload}\n```\n"
