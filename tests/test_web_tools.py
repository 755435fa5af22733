"""Tests for switchboard/api/web_tools.py -- Tavily-backed search tool.

HTTP calls are mocked via unittest.mock.AsyncMock; settings are real
Settings instances built in-process.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from switchboard.api.tools import ToolDispatcher
from switchboard.api.web_tools import TAVILY_SEARCH_URL, register_web_tools
from switchboard.config import Settings


def _settings(**overrides) -> Settings:
    values = {"OPENAI_API_KEY": "test", "TAVILY_API_KEY": "tvly-test"}
    values.update(overrides)
    return Settings(**values)


def _mock_response(status_code: int = 200, json_data: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    return resp


def _mock_http_client(response: MagicMock | None = None) -> AsyncMock:
    client = AsyncMock(spec=httpx.AsyncClient)
    if response is not None:
        client.post.return_value = response
    return client


def _tavily_response(results: list[dict] | None = None) -> dict:
    if results is None:
        results = [
            {
                "title": "Paris travel guide",
                "url": "https://example.com/paris",
                "content": "Things to do in Paris.",
                "score": 0.91,
                "raw_content": None,
            }
        ]
    return {"query": "paris", "results": results}


def _dispatcher(settings: Settings, http: AsyncMock) -> ToolDispatcher:
    dispatcher = ToolDispatcher()
    register_web_tools(dispatcher, settings, http)
    return dispatcher


class TestRegistration:
    def test_search_registered(self):
        dispatcher = _dispatcher(_settings(), _mock_http_client())
        assert dispatcher.names == ["search"]
        definition = dispatcher.tool_definitions()[0]["function"]
        assert definition["parameters"]["required"] == ["query"]
        assert "search the web" in definition["description"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_success(self):
        http = _mock_http_client(_mock_response(json_data=_tavily_response()))
        dispatcher = _dispatcher(_settings(), http)

        text, is_error = await dispatcher.dispatch("search", {"query": "paris"})

        assert is_error is False
        data = json.loads(text)
        assert data["results"] == [{
            "title": "Paris travel guide",
            "url": "https://example.com/paris",
            "content": "Things to do in Paris.",
            "score": 0.91,
        }]
        args, kwargs = http.post.call_args
        assert args[0] == TAVILY_SEARCH_URL
        assert kwargs["json"] == {"query": "paris", "max_results": 5}
        assert kwargs["headers"]["Authorization"] == "Bearer tvly-test"

    @pytest.mark.asyncio
    async def test_max_results_capped(self):
        http = _mock_http_client(_mock_response(json_data=_tavily_response()))
        dispatcher = _dispatcher(_settings(), http)
        await dispatcher.dispatch("search", {"query": "paris", "max_results": 50})
        assert http.post.call_args.kwargs["json"]["max_results"] == 10

    @pytest.mark.asyncio
    async def test_no_results(self):
        http = _mock_http_client(_mock_response(json_data=_tavily_response([])))
        text, is_error = await _dispatcher(_settings(), http).dispatch("search", {"query": "zzz"})
        assert text == "No results found for: zzz"
        assert is_error is False

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        http = _mock_http_client()
        text, _ = await _dispatcher(_settings(TAVILY_API_KEY=""), http).dispatch(
            "search", {"query": "paris"}
        )
        assert "TAVILY_API_KEY not configured" in text
        http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_query(self):
        http = _mock_http_client()
        text, _ = await _dispatcher(_settings(), http).dispatch("search", {"query": "  "})
        assert text == "Error: empty search query."
        http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_becomes_tool_error(self):
        http = _mock_http_client(_mock_response(status_code=401))
        text, is_error = await _dispatcher(_settings(), http).dispatch("search", {"query": "paris"})
        assert is_error is True
        assert text.startswith("Error from search:")
        assert "HTTP 401" in text
