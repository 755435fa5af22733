"""Shared fixtures: settings, scripted model client, recording callbacks.

No test touches the network. ScriptedClient replaces ModelClient: each
call_api_stream() consumes the next scripted step, a list of
StreamEvents and/or exceptions (raised at that point of the stream).
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from switchboard.api.callbacks import AgentCallbacks
from switchboard.api.models import ApiResponse, StreamEvent, TokenUsage, ToolCall
from switchboard.config import Settings

# ---------------------------------------------------------------------------
# Stream event helpers
# ---------------------------------------------------------------------------


def text(t: str) -> StreamEvent:
    return StreamEvent(type="text_delta", text=t)


def call(name: str, args: dict | None = None, call_id: str = "call_1") -> StreamEvent:
    return StreamEvent(
        type="tool_call",
        tool_call=ToolCall(tool_call_id=call_id, tool_name=name, arguments=args or {}),
    )


def done(reason: str = "stop") -> StreamEvent:
    return StreamEvent(type="done", finish_reason=reason)


def error(message: str = "overloaded_error: Overloaded") -> StreamEvent:
    return StreamEvent(type="error", text=message)


# ---------------------------------------------------------------------------
# Scripted model client
# ---------------------------------------------------------------------------


class ScriptedClient:
    """Stands in for ModelClient with pre-scripted streaming steps."""

    def __init__(self, steps: list[list[Any]], summary: str = "User wants a flight to Paris.") -> None:
        self.steps = list(steps)
        self.stream_calls: list[dict[str, Any]] = []
        self.call_api = AsyncMock(
            return_value=ApiResponse(text=summary, finish_reason="stop")
        )

    async def call_api_stream(self, model, messages, tools=None):
        self.stream_calls.append({
            "model": model,
            "messages": list(messages),
            "tools": tools,
        })
        if not self.steps:
            raise AssertionError("No scripted step left for call_api_stream")
        for item in self.steps.pop(0):
            if isinstance(item, BaseException):
                raise item
            yield item


# ---------------------------------------------------------------------------
# Recording callbacks
# ---------------------------------------------------------------------------


class Recorder:
    """Collects every callback event in order."""

    def __init__(self) -> None:
        self.tokens: list[str] = []
        self.events: list[tuple] = []
        self.completed: list[str] = []
        self.usage: list[TokenUsage] = []

    def callbacks(self, *, track_usage: bool = False, approval=None) -> AgentCallbacks:
        return AgentCallbacks(
            on_token=self.tokens.append,
            on_tool_call_start=lambda name, args: self.events.append(("start", name, args)),
            on_tool_call_end=lambda name, result: self.events.append(("end", name, result)),
            on_complete=self.completed.append,
            on_tool_approval=approval,
            on_token_usage=self.usage.append if track_usage else None,
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        OPENAI_API_KEY="test-key",
        model="gpt-4o-mini",
        summary_model="gpt-4o-mini",
        max_steps=5,
    )


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
