"""Model transport -- direct httpx calls to an OpenAI-compatible
Chat Completions endpoint.

Provides a non-streaming call (used by compaction) and a streaming call
(used by the orchestration loop). Converts provider-neutral history
entries (see models.py) to the wire format and parses SSE chunks back
into StreamEvents. One ModelClient is shared by every agent in the process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from switchboard.api.models import ApiResponse, StreamEvent, ToolCall
from switchboard.config import Settings

logger = logging.getLogger(__name__)

_RETRY_STATUSES = frozenset({429, 500, 502, 503})
_MAX_RETRY_DELAY = 30.0


class ModelApiError(RuntimeError):
    """The model API returned an error after retries were exhausted."""


# ------------------------------------------------------------------
# Wire format conversion
# ------------------------------------------------------------------


def _parts_text(parts: list[Any]) -> str:
    return "".join(
        p.get("text", "") for p in parts
        if isinstance(p, dict) and p.get("type") == "text"
    )


def _output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


def to_wire_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert history entries to Chat Completions messages.

    A tool entry expands to one wire message per tool_result part.
    """
    wire: list[dict[str, Any]] = []
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content", "")

        if role == "tool":
            for part in content if isinstance(content, list) else []:
                if isinstance(part, dict) and part.get("type") == "tool_result":
                    wire.append({
                        "role": "tool",
                        "tool_call_id": part.get("tool_call_id", ""),
                        "content": _output_text(part.get("output", "")),
                    })
            continue

        if role == "assistant" and isinstance(content, list):
            out: dict[str, Any] = {
                "role": "assistant",
                "content": _parts_text(content) or None,
            }
            tool_calls = [
                {
                    "id": p.get("tool_call_id", ""),
                    "type": "function",
                    "function": {
                        "name": p.get("tool_name", ""),
                        "arguments": json.dumps(p.get("input", {}), default=str),
                    },
                }
                for p in content
                if isinstance(p, dict) and p.get("type") == "tool_call"
            ]
            if tool_calls:
                out["tool_calls"] = tool_calls
            wire.append(out)
            continue

        if isinstance(content, list):
            content = _parts_text(content)
        wire.append({"role": role, "content": content})
    return wire


def _parse_arguments(raw: str | None, tool_name: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparseable arguments for tool %s: %.200s", tool_name, raw)
        return {}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def _retry_after_seconds(value: str | None, default: float = 1.0) -> float:
    """Delay from a Retry-After header (seconds or HTTP date), capped."""
    if not value:
        return default
    try:
        delay = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.warning("Unparseable retry-after header: %r", value)
            return default
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        delay = (when - datetime.now(timezone.utc)).total_seconds()
    if not math.isfinite(delay):
        return default
    return min(max(delay, 0.0), _MAX_RETRY_DELAY)


# ------------------------------------------------------------------
# SSE parsing
# ------------------------------------------------------------------


@dataclass
class StreamChunk:
    """Parsed content of one SSE data payload."""

    text: str = ""
    tool_call_deltas: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str = ""
    error: str = ""


def _parse_sse_chunk(data: dict[str, Any]) -> StreamChunk | None:
    """Parse a Chat Completions stream payload into a StreamChunk.

    Returns None for payloads that carry nothing (role-only deltas,
    usage-only trailers).
    """
    if "error" in data:
        error = data.get("error") or {}
        if isinstance(error, dict):
            return StreamChunk(
                error=f"{error.get('type', 'unknown')}: {error.get('message', '')}"
            )
        return StreamChunk(error=str(error))

    choices = data.get("choices") or []
    if not choices:
        return None
    choice = choices[0]
    delta = choice.get("delta") or {}

    chunk = StreamChunk(
        text=delta.get("content") or "",
        tool_call_deltas=list(delta.get("tool_calls") or []),
        finish_reason=choice.get("finish_reason") or "",
    )
    if not (chunk.text or chunk.tool_call_deltas or chunk.finish_reason):
        return None
    return chunk


def _accumulate_tool_delta(
    accumulators: dict[int, dict[str, Any]], delta: dict[str, Any]
) -> None:
    """Merge one streamed tool_call fragment, keyed by its index."""
    index = delta.get("index", 0)
    acc = accumulators.setdefault(index, {"id": "", "name": "", "arguments": []})
    if delta.get("id"):
        acc["id"] = delta["id"]
    function = delta.get("function") or {}
    if function.get("name"):
        acc["name"] = function["name"]
    if function.get("arguments"):
        acc["arguments"].append(function["arguments"])


def _finalize_tool_calls(accumulators: dict[int, dict[str, Any]]) -> list[ToolCall]:
    return [
        ToolCall(
            tool_call_id=acc["id"],
            tool_name=acc["name"],
            arguments=_parse_arguments("".join(acc["arguments"]), acc["name"]),
        )
        for _, acc in sorted(accumulators.items())
    ]


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------


class ModelClient:
    """Shared httpx client for chat completion calls."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Initialize the httpx client with auth and timeout settings."""
        settings = self._settings
        headers = {"content-type": "application/json"}
        if settings.openai_api_key:
            headers["authorization"] = f"Bearer {settings.openai_api_key}"
        else:
            logger.warning("OPENAI_API_KEY is not set -- API calls will fail")

        timeout = httpx.Timeout(
            connect=settings.api_timeout_connect,
            read=settings.api_timeout_read,
            write=10.0,
            pool=10.0,
        )
        limits = httpx.Limits(max_connections=10, max_keepalive_connections=5)
        self._http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=headers,
            timeout=timeout,
            limits=limits,
        )
        logger.info("httpx client initialized (base_url=%s)", settings.api_base_url)

    async def close(self) -> None:
        """Clean up httpx client."""
        if self._http:
            await self._http.aclose()
            self._http = None

    def _require_http(self) -> httpx.AsyncClient:
        if not self._http:
            raise RuntimeError("httpx client not initialized -- call start() first")
        return self._http

    @staticmethod
    def _build_payload(
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Request body for both call_api and call_api_stream."""
        payload: dict[str, Any] = {
            "model": model,
            "messages": to_wire_messages(messages),
        }
        if tools:
            payload["tools"] = tools
        if stream:
            payload["stream"] = True
        return payload

    async def call_api(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ApiResponse:
        """Non-streaming completion with retry for 429/5xx and timeouts.

        Raises ModelApiError on persistent errors.
        """
        http = self._require_http()
        payload = self._build_payload(model, messages, tools)
        attempts = 1 + max(0, self._settings.api_max_retries)

        last_error: Exception | None = None
        for attempt in range(attempts):
            retry_allowed = attempt < attempts - 1
            try:
                response = await http.post("/chat/completions", json=payload)

                if response.status_code == 200:
                    return self._parse_response(response.json())

                try:
                    error = response.json().get("error", {})
                    error_type = error.get("type", "unknown")
                    error_msg = error.get("message", "unknown error")
                except Exception:
                    error_type = "http_error"
                    error_msg = f"HTTP {response.status_code}: {response.text[:500]}"

                last_error = ModelApiError(
                    f"Model API error ({response.status_code}): {error_type} - {error_msg}"
                )
                if response.status_code in _RETRY_STATUSES and retry_allowed:
                    retry_after = _retry_after_seconds(response.headers.get("retry-after"))
                    logger.warning(
                        "API error %d (%s), retrying in %.1fs: %s",
                        response.status_code, error_type, retry_after, error_msg,
                    )
                    await asyncio.sleep(retry_after)
                    continue
                break

            except httpx.TimeoutException as e:
                last_error = ModelApiError(f"API request timed out: {e}")
                if retry_allowed:
                    logger.warning("API timeout, retrying: %s", e)
                    await asyncio.sleep(1)
                    continue
            except httpx.HTTPError as e:
                last_error = ModelApiError(f"HTTP error: {e}")
                break  # Don't retry connection errors

        raise last_error or ModelApiError("API call failed with unknown error")

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> ApiResponse:
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        tool_calls = [
            ToolCall(
                tool_call_id=tc.get("id", ""),
                tool_name=(tc.get("function") or {}).get("name", ""),
                arguments=_parse_arguments(
                    (tc.get("function") or {}).get("arguments"),
                    (tc.get("function") or {}).get("name", ""),
                ),
            )
            for tc in message.get("tool_calls") or []
        ]
        return ApiResponse(
            text=message.get("content") or "",
            finish_reason=choice.get("finish_reason") or "",
            tool_calls=tool_calls,
            usage=data.get("usage"),
        )

    async def call_api_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Streaming completion.

        Yields text_delta events as they arrive, then one tool_call event
        per completed call, then a single done event carrying the finish
        reason. HTTP errors, in-stream error payloads and a stream that
        ends without a finish reason yield an error event and stop.
        Transport exceptions raised mid-stream propagate to the reader.
        """
        http = self._require_http()
        payload = self._build_payload(model, messages, tools, stream=True)

        accumulators: dict[int, dict[str, Any]] = {}
        finish_reason = ""

        async with http.stream("POST", "/chat/completions", json=payload) as response:
            if response.status_code != 200:
                error_body = await response.aread()
                yield StreamEvent(
                    type="error",
                    text=f"HTTP {response.status_code}: {error_body.decode(errors='replace')[:500]}",
                )
                return

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                raw = line[5:].strip()
                if not raw:
                    continue
                if raw == "[DONE]":
                    break
                chunk = _parse_sse_chunk(json.loads(raw))
                if chunk is None:
                    continue
                if chunk.error:
                    yield StreamEvent(type="error", text=chunk.error)
                    return
                if chunk.text:
                    yield StreamEvent(type="text_delta", text=chunk.text)
                for delta in chunk.tool_call_deltas:
                    _accumulate_tool_delta(accumulators, delta)
                if chunk.finish_reason:
                    finish_reason = chunk.finish_reason

        if not finish_reason:
            yield StreamEvent(type="error", text="Stream ended without a finish reason")
            return

        for call in _finalize_tool_calls(accumulators):
            yield StreamEvent(type="tool_call", tool_call=call)
        yield StreamEvent(type="done", finish_reason=finish_reason)
