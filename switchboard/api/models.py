"""Shared data models for the API layer.

History entries are plain dicts in a provider-neutral shape. The
transport in client.py converts them to and from the wire format.

    {"role": "system" | "user", "content": str}
    {"role": "assistant", "content": str | list[part]}
        part: {"type": "text", "text": ...}
              {"type": "tool_call", "tool_call_id", "tool_name", "input"}
    {"role": "tool", "content": [
        {"type": "tool_result", "tool_call_id", "tool_name", "output"}
    ]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """A tool invocation requested by the model during a turn."""

    tool_call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of executing one ToolCall. Paired 1:1 by tool_call_id."""

    tool_call_id: str
    tool_name: str
    output: str
    is_error: bool = False
    duration_ms: int | None = None


@dataclass
class TokenUsage:
    """Usage snapshot reported to on_token_usage after history changes."""

    input_tokens: int
    output_tokens: int
    total_tokens: int
    context_window: int
    threshold: float
    percentage: float


@dataclass
class StreamEvent:
    """A single event from the streaming API response."""

    type: str  # text_delta, tool_call, done, error
    text: str = ""
    tool_call: ToolCall | None = None
    finish_reason: str = ""


@dataclass
class ApiResponse:
    """Parsed response from a non-streaming completion call."""

    text: str
    finish_reason: str  # stop, length, tool_calls, content_filter
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: dict[str, int] | None = None


# ------------------------------------------------------------------
# Message constructors
# ------------------------------------------------------------------


def text_message(role: str, text: str) -> dict[str, Any]:
    return {"role": role, "content": text}


def tool_call_part(call: ToolCall) -> dict[str, Any]:
    return {
        "type": "tool_call",
        "tool_call_id": call.tool_call_id,
        "tool_name": call.tool_name,
        "input": call.arguments,
    }


def tool_result_part(result: ToolResult) -> dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_call_id": result.tool_call_id,
        "tool_name": result.tool_name,
        "output": result.output,
    }


def assistant_message(text: str, tool_calls: list[ToolCall]) -> dict[str, Any]:
    """Build the assistant entry for one model step.

    Plain text steps keep string content; steps that requested tools
    carry a part list so tool_call ids survive in history.
    """
    if not tool_calls:
        return text_message("assistant", text)
    parts: list[dict[str, Any]] = []
    if text:
        parts.append({"type": "text", "text": text})
    parts.extend(tool_call_part(tc) for tc in tool_calls)
    return {"role": "assistant", "content": parts}


def tool_message(result: ToolResult) -> dict[str, Any]:
    return {"role": "tool", "content": [tool_result_part(result)]}


# ------------------------------------------------------------------
# Text extraction
# ------------------------------------------------------------------


def part_text(part: Any) -> str:
    """Render one content part as text, including tool payloads."""
    if not isinstance(part, dict):
        return str(part)
    part_type = part.get("type")
    if part_type == "text":
        return part.get("text", "")
    if part_type == "tool_call":
        args = json.dumps(part.get("input", {}), ensure_ascii=False, default=str)
        return f"[tool call {part.get('tool_name', '')}] {args}"
    if part_type == "tool_result":
        output = part.get("output", "")
        if not isinstance(output, str):
            output = json.dumps(output, ensure_ascii=False, default=str)
        return f"[tool result {part.get('tool_name', '')}] {output}"
    return json.dumps(part, ensure_ascii=False, default=str)


def extract_message_text(message: dict[str, Any]) -> str:
    """Flatten a history entry's content to text."""
    content = message.get("content", "")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(part_text(p) for p in content)
    return str(content)
