"""Web search behind the ``browse`` action."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Protocol

import httpx

__all__ = ["SearchResult", "SearchProvider", "DuckDuckGoHtmlProvider", "browse"]

LOGGER = logging.getLogger(__name__)

_DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
_TITLE_PATTERN = re.compile(r'<a class="result__a" href="(.*?)".*?>(.*?)</a>')
_SNIPPET_PATTERN = re.compile(r'<a class="result__snippet".*?>(.*?)</a>')
_TAG_PATTERN = re.compile(r"<[^>]*>")


@dataclass(slots=True)
class SearchResult:
    title: str
    url: str
    snippet: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class SearchProvider(Protocol):
    """Anything that can turn a query into ranked results."""

    async def search(self, query: str, num_results: int) -> List[SearchResult]:
        ...


class DuckDuckGoHtmlProvider:
    """Scrapes DuckDuckGo's HTML endpoint, which needs no API key."""

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: float = 20.0) -> None:
        self._client = client
        self._timeout = timeout

    async def search(self, query: str, num_results: int) -> List[SearchResult]:
        client = self._client or httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        try:
            response = await client.get(
                _DUCKDUCKGO_URL,
                params={"q": query},
                headers={"User-Agent": _USER_AGENT},
            )
            response.raise_for_status()
            body = response.text
        finally:
            if self._client is None:
                await client.aclose()
        return parse_results(body, num_results)


def parse_results(body: str, num_results: int) -> List[SearchResult]:
    """Pair the first ``num_results`` titles with the first ``num_results`` snippets."""

    titles = [(match.group(1), _clean(match.group(2))) for match in _TITLE_PATTERN.finditer(body)][:num_results]
    snippets = [_clean(match.group(1)) for match in _SNIPPET_PATTERN.finditer(body)][:num_results]
    return [
        SearchResult(title=title, url=url, snippet=snippet)
        for (url, title), snippet in zip(titles, snippets)
    ]


async def browse(provider: SearchProvider, query: str, num_results: Any = 5) -> Dict[str, Any]:
    """Run ``query`` and shape the payload stored on the action; failures never raise."""

    try:
        limit = int(num_results) if num_results else 5
    except (TypeError, ValueError, OverflowError):
        limit = 5
    limit = max(1, limit)
    LOGGER.info("Searching the web for: %s", query)
    try:
        results = await provider.search(str(query or ""), limit)
    except (httpx.HTTPError, ValueError, OSError) as exc:
        LOGGER.warning("Web search failed for %r: %s", query, exc)
        return {"query": query, "error": f"Search failed: {exc}", "results": []}
    return {"query": query, "results": [result.to_dict() for result in results[:limit]]}


def _clean(fragment: str) -> str:
    return _TAG_PATTERN.sub("", html.unescape(fragment))
