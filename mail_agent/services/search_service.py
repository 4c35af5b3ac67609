"""Web search over public providers (Bing, DuckDuckGo, Wikipedia)."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from mail_agent.config import Settings
from mail_agent.core.logging import get_logger
from mail_agent.schemas.email import SearchResult

logger = get_logger(__name__)

BING_SEARCH_URL = "https://api.bing.microsoft.com/v7.0/search"
DUCKDUCKGO_URL = "https://api.duckduckgo.com/"
WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_PAGE_URL = "https://en.wikipedia.org/wiki/"

_HTML_TAG = re.compile(r"<[^>]+>")


class SearchService:
    """Search the web and return ranked ``SearchResult`` lists.

    Provider failures never reach the caller: any error yields an empty list.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        bing_api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = provider
        self.bing_api_key = bing_api_key
        self.timeout = timeout
        self._transport = transport

    async def search(
        self,
        query: str,
        limit: int = 5,
        site: Optional[str] = None,
    ) -> List[SearchResult]:
        q = f"{query} site:{site}" if site else query
        provider = self.provider or ("bing" if self.bing_api_key else "duckduckgo")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                if provider == "bing" and self.bing_api_key:
                    return await self._search_bing(client, q, limit)
                if provider == "wikipedia":
                    return await self._search_wikipedia(client, q, limit)
                results = await self._search_duckduckgo(client, q, limit)
                if results:
                    return results
                return await self._search_wikipedia(client, q, limit)
        except Exception as e:
            logger.warning("Search provider failed", provider=provider, error=str(e))
            return []

    async def _search_bing(
        self, client: httpx.AsyncClient, query: str, limit: int
    ) -> List[SearchResult]:
        response = await client.get(
            BING_SEARCH_URL,
            params={"q": query, "count": str(min(max(limit, 1), 50))},
            headers={"Ocp-Apim-Subscription-Key": self.bing_api_key or ""},
        )
        response.raise_for_status()
        data = response.json()
        items: List[Dict[str, Any]] = (data.get("webPages") or {}).get("value") or []
        results = [
            SearchResult(
                title=str(item.get("name") or ""),
                url=str(item.get("url") or ""),
                snippet=str(item.get("snippet") or ""),
            )
            for item in items[:limit]
        ]
        return [r for r in results if r.title and r.url]

    async def _search_duckduckgo(
        self, client: httpx.AsyncClient, query: str, limit: int
    ) -> List[SearchResult]:
        response = await client.get(
            DUCKDUCKGO_URL,
            params={"q": query, "format": "json", "no_redirect": "1", "no_html": "1"},
        )
        response.raise_for_status()
        data = response.json()
        topics = data.get("RelatedTopics")
        if not isinstance(topics, list):
            return []

        results: List[SearchResult] = []
        for topic in topics:
            # Grouped topics nest their entries one level down
            entries = topic.get("Topics") if isinstance(topic.get("Topics"), list) else [topic]
            for entry in entries:
                if entry.get("Text") and entry.get("FirstURL"):
                    results.append(
                        SearchResult(title=entry["Text"], url=entry["FirstURL"], snippet=entry["Text"])
                    )
                if len(results) >= limit:
                    return results
        return results

    async def _search_wikipedia(
        self, client: httpx.AsyncClient, query: str, limit: int
    ) -> List[SearchResult]:
        response = await client.get(
            WIKIPEDIA_API_URL,
            params={"action": "query", "list": "search", "srsearch": query, "format": "json"},
        )
        response.raise_for_status()
        data = response.json()
        items = (data.get("query") or {}).get("search") or []
        results = []
        for item in items[:limit]:
            title = str(item.get("title") or "")
            if not title:
                continue
            results.append(
                SearchResult(
                    title=title,
                    url=f"{WIKIPEDIA_PAGE_URL}{quote(title)}",
                    snippet=_HTML_TAG.sub("", str(item.get("snippet") or "")),
                )
            )
        return results


def create_search_service(settings: Settings) -> SearchService:
    """Build the search service from application settings."""
    return SearchService(
        provider=settings.SEARCH_PROVIDER,
        bing_api_key=settings.BING_SEARCH_API_KEY,
        timeout=settings.SEARCH_TIMEOUT,
    )
