"""Delegation -- exposing a sub-agent as a tool of an orchestrating agent.

The sub-agent runs a full, independent turn (empty history, the task as
its user message). Its streamed text stays private; its tool activity is
forwarded to the outer callbacks under a "<label> -> <tool>" name so a
caller can tell it apart from the orchestrator's own calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from switchboard.api.callbacks import AgentCallbacks
from switchboard.api.tools import Tool

if TYPE_CHECKING:
    from switchboard.api.runner import AgentRunner

logger = logging.getLogger(__name__)

_TASK_SCHEMA_DESCRIPTION = (
    "The specific task or question for the agent, with all necessary "
    "details (names, places, dates, recipients)."
)


def namespaced(label: str, name: str) -> str:
    return f"{label} -> {name}"


@dataclass(frozen=True)
class SubAgent:
    """A specialized agent offered to an orchestrator as a tool."""

    tool_name: str  # e.g. "delegate_to_travel_agent"
    label: str  # namespace prefix for forwarded tool events
    description: str
    runner: AgentRunner

    @property
    def empty_result(self) -> str:
        return f"{self.label.capitalize()} agent returned no results."


class DelegatingCallbacks(AgentCallbacks):
    """Callbacks handed to a sub-agent run.

    Tokens are swallowed, tool events are renamed and forwarded, approval
    and usage hooks pass through unchanged, and the final text is kept
    in .result.
    """

    def __init__(self, outer: AgentCallbacks, label: str) -> None:
        super().__init__(
            on_tool_approval=outer.on_tool_approval,
            on_token_usage=outer.on_token_usage,
        )
        self._outer = outer
        self._label = label
        self.result = ""

    async def token(self, text: str) -> None:
        return None

    async def tool_call_start(self, name: str, args: dict[str, Any]) -> None:
        await self._outer.tool_call_start(namespaced(self._label, name), args)

    async def tool_call_end(self, name: str, result: str) -> None:
        await self._outer.tool_call_end(namespaced(self._label, name), result)

    async def complete(self, text: str) -> None:
        self.result = text


def create_delegation_tool(
    sub_agent: SubAgent,
    callbacks: AgentCallbacks,
    *,
    depth: int = 0,
    max_depth: int = 1,
) -> Tool:
    """Wrap sub_agent as a Tool bound to the caller's callbacks.

    depth is the delegating agent's own depth; the sub-agent runs at
    depth + 1 and is refused once that would exceed max_depth.
    """

    async def execute(task: str) -> str:
        if depth + 1 > max_depth:
            logger.warning(
                "Refusing delegation to %s at depth %d (max %d)",
                sub_agent.label, depth + 1, max_depth,
            )
            return (
                f"Delegation to the {sub_agent.label} agent is not allowed "
                f"at this depth (limit {max_depth})."
            )

        logger.info("Delegating to %s agent: %.80s", sub_agent.label, task)
        inner = DelegatingCallbacks(callbacks, sub_agent.label)
        await sub_agent.runner.run_agent(task, [], inner, depth=depth + 1)
        logger.info(
            "%s agent finished (%d chars)", sub_agent.label, len(inner.result)
        )
        return inner.result or sub_agent.empty_result

    return Tool(
        name=sub_agent.tool_name,
        description=sub_agent.description,
        input_schema={
            "type": "object",
            "properties": {
                "task": {"type": "string", "description": _TASK_SCHEMA_DESCRIPTION},
            },
            "required": ["task"],
        },
        execute=execute,
    )
