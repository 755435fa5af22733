"""Caller-supplied event hooks for a single agent invocation.

Hooks may be plain functions or coroutines. The runner and delegation
tools only hold an AgentCallbacks for the duration of one run_agent call.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from switchboard.api.models import TokenUsage


def _noop(*args: Any) -> None:
    return None


async def _call(hook: Callable[..., Any], *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class AgentCallbacks:
    on_token: Callable[[str], Any] = _noop
    on_tool_call_start: Callable[[str, dict[str, Any]], Any] = _noop
    on_tool_call_end: Callable[[str, str], Any] = _noop
    on_complete: Callable[[str], Any] = _noop
    on_tool_approval: Callable[[str, dict[str, Any]], Any] | None = None
    on_token_usage: Callable[[TokenUsage], Any] | None = None

    async def token(self, text: str) -> None:
        await _call(self.on_token, text)

    async def tool_call_start(self, name: str, args: dict[str, Any]) -> None:
        await _call(self.on_tool_call_start, name, args)

    async def tool_call_end(self, name: str, result: str) -> None:
        await _call(self.on_tool_call_end, name, result)

    async def complete(self, text: str) -> None:
        await _call(self.on_complete, text)

    async def approve(self, name: str, args: dict[str, Any]) -> bool:
        """Ask the caller to approve a tool run. No hook means approved."""
        if self.on_tool_approval is None:
            return True
        return bool(await _call(self.on_tool_approval, name, args))

    async def token_usage(self, usage: TokenUsage) -> None:
        if self.on_token_usage is not None:
            await _call(self.on_token_usage, usage)
