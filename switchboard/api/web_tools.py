"""Web tools for the search agent: search.

Queries the Tavily search API. Uses a separate httpx client (NOT the
ModelClient's -- that one carries model API credentials).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from switchboard.api.tools import ToolDispatcher
from switchboard.config import Settings

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


async def _web_search(
    query: str,
    max_results: int | None = None,
    *,
    _settings: Settings,
    _http: httpx.AsyncClient,
) -> dict[str, Any] | str:
    """Search via Tavily. HTTP failures raise and surface as tool errors."""
    if not _settings.tavily_api_key:
        return (
            "Error: TAVILY_API_KEY not configured. Set this environment "
            "variable to enable web search."
        )
    if not query.strip():
        return "Error: empty search query."

    count = min(max_results or _settings.web_search_max_results, 10)

    response = await _http.post(
        TAVILY_SEARCH_URL,
        json={"query": query, "max_results": count},
        headers={
            "Authorization": f"Bearer {_settings.tavily_api_key}",
            "Content-Type": "application/json",
        },
        timeout=15,
    )
    if response.status_code != 200:
        raise RuntimeError(
            f"Search failed (HTTP {response.status_code}). "
            "Check TAVILY_API_KEY if 401."
        )

    data = response.json()
    results = [
        {
            "title": item.get("title", ""),
            "url": item.get("url", ""),
            "content": item.get("content", ""),
            "score": item.get("score"),
        }
        for item in data.get("results", [])[:count]
    ]
    if not results:
        return f"No results found for: {query}"

    logger.debug("search %r returned %d results", query, len(results))
    return {"query": data.get("query", query), "results": results}


_WEB_SEARCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Use this tool to search the web for information.",
    "properties": {
        "query": {"type": "string", "description": "The search query"},
        "max_results": {
            "type": "integer",
            "description": "Number of results (1-10)",
            "minimum": 1,
            "maximum": 10,
        },
    },
    "required": ["query"],
}


def register_web_tools(
    dispatcher: ToolDispatcher,
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> None:
    """Register the search tool with the dispatcher.

    Creates a closure wrapper that injects settings and the httpx client.
    """
    async def _search(query: str, max_results: int | None = None) -> dict[str, Any] | str:
        return await _web_search(query, max_results, _settings=settings, _http=http_client)

    dispatcher.register("search", _search, _WEB_SEARCH_SCHEMA)
