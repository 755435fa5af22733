"""Tool contract and dispatcher.

A Tool is {name, description, input_schema, execute}. execute receives the
model's arguments as keyword arguments and may be sync or async; it may
return a string or any JSON-serializable value.

ToolDispatcher looks tools up by name at dispatch time and converts every
outcome (including unknown names and raised errors) into result text
for the model.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    input_schema: dict[str, Any]
    execute: Callable[..., Any]
    requires_approval: bool = False


def stringify_result(raw: Any) -> str:
    """Render a tool return value as tool-result text."""
    if isinstance(raw, str):
        return raw
    try:
        return json.dumps(raw, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(raw)


class ToolDispatcher:
    """Registers tools and dispatches tool calls from the model."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.warning("Replacing already registered tool %s", tool.name)
        self._tools[tool.name] = tool

    def register(
        self,
        name: str,
        handler: Callable[..., Any],
        schema: dict[str, Any],
        *,
        requires_approval: bool = False,
    ) -> None:
        """Register a handler with its JSON schema.

        The schema's "description" key doubles as the tool description.
        """
        self.add(Tool(
            name=name,
            description=schema.get("description", ""),
            input_schema=schema,
            execute=handler,
            requires_approval=requires_approval,
        ))

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def with_tools(self, extra: Iterable[Tool]) -> ToolDispatcher:
        """Return a new dispatcher holding these tools plus extra."""
        merged = ToolDispatcher(self._tools.values())
        for tool in extra:
            merged.add(tool)
        return merged

    async def dispatch(self, name: str, args: dict[str, Any]) -> tuple[str, bool]:
        """Execute a tool call and return (result_text, is_error)."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool %s", name)
            return f"Tool {name} not found.", True
        try:
            raw = tool.execute(**(args or {}))
            if inspect.isawaitable(raw):
                raw = await raw
            return stringify_result(raw), False
        except Exception as e:
            logger.exception("Tool dispatch error for %s", name)
            return f"Error from {name}: {e}", True

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Return all tool definitions in function-calling API format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": {
                        k: v for k, v in tool.input_schema.items()
                        if k != "description"
                    },
                },
            }
            for tool in self._tools.values()
        ]
