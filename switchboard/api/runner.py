"""Agent runner -- executes one conversational turn against the model API.

A turn assembles system prompt + filtered history + the new user
message, compacts the history first if the estimate is over threshold,
then streams model steps, dispatching requested tools between steps,
until the model stops asking for tools or the step limit is hit.

Streaming text is forwarded to callbacks as it arrives. Tool errors,
unknown tools and stream failures never abort a turn; compaction
failures do.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from switchboard.api.callbacks import AgentCallbacks
from switchboard.api.client import ModelClient
from switchboard.api.compaction import (
    ConversationCompactor,
    is_over_threshold,
    usage_percentage,
)
from switchboard.api.delegation import SubAgent, create_delegation_tool
from switchboard.api.history import filter_compatible
from switchboard.api.limits import ModelLimits, ModelLimitsRegistry
from switchboard.api.models import (
    TokenUsage,
    ToolCall,
    ToolResult,
    assistant_message,
    text_message,
    tool_message,
)
from switchboard.api.tools import ToolDispatcher
from switchboard.config import Settings

logger = logging.getLogger(__name__)

FINISH_TOOL_CALLS = "tool_calls"

STREAM_FAILURE_MESSAGE = (
    "I apologize, but I wasn't able to generate a response. "
    "Could you please try rephrasing your message?"
)


@dataclass
class StepOutcome:
    """Result of one streamed model call."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""
    error: str | None = None


class AgentRunner:
    """Runs turns for one agent: a system prompt, a tool set, a model.

    Sub-agents are offered as delegation tools, rebuilt per turn so they
    are bound to that turn's callbacks and delegation depth.
    """

    def __init__(
        self,
        name: str,
        system_prompt: str,
        client: ModelClient,
        settings: Settings,
        limits: ModelLimitsRegistry,
        *,
        dispatcher: ToolDispatcher | None = None,
        sub_agents: Iterable[SubAgent] = (),
        compactor: ConversationCompactor | None = None,
        model: str | None = None,
        max_steps: int | None = None,
    ) -> None:
        self.name = name
        self._system_prompt = system_prompt
        self._client = client
        self._settings = settings
        self._limits = limits
        self._dispatcher = dispatcher or ToolDispatcher()
        self._sub_agents = list(sub_agents)
        self._compactor = compactor or ConversationCompactor(settings, client.call_api)
        self._model = model or settings.model
        self._max_steps = max_steps or settings.max_steps

    @property
    def model(self) -> str:
        return self._model

    @property
    def sub_agents(self) -> list[SubAgent]:
        return list(self._sub_agents)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run_agent(
        self,
        user_message: str,
        conversation_history: list[dict[str, Any]],
        callbacks: AgentCallbacks,
        *,
        depth: int = 0,
    ) -> list[dict[str, Any]]:
        """Run one turn and return the updated history.

        The returned list starts with this agent's system prompt. System
        entries in conversation_history are replaced by it, so a history
        returned by a previous turn can be passed straight back in.
        """
        limits = self._limits.limits_for(self._model)
        system = text_message("system", self._system_prompt)
        history = [
            m for m in filter_compatible(conversation_history)
            if m.get("role") != "system"
        ]
        user = text_message("user", user_message)
        messages = [system, *history, user]

        logger.info(
            "Turn start: agent=%s depth=%d history=%d model=%s",
            self.name, depth, len(history), self._model,
        )

        # Compaction only ever happens here, before the first model call.
        if self._compactor.should_compact(messages, limits.available_window):
            compacted = await self._compactor.compact([system, *history])
            messages = [system, *compacted, user]

        dispatcher = self._turn_dispatcher(callbacks, depth)
        tool_defs = dispatcher.tool_definitions() if len(dispatcher) else None

        full_response = ""
        for step in range(self._max_steps):
            final_step = step == self._max_steps - 1
            outcome = await self._stream_step(
                messages, None if final_step else tool_defs, callbacks
            )

            if outcome.error is not None:
                if outcome.text:
                    logger.warning(
                        "Stream error after %d chars, keeping partial text: %s",
                        len(outcome.text), outcome.error,
                    )
                    full_response += outcome.text
                    messages.append(assistant_message(outcome.text, []))
                else:
                    logger.warning("Stream error with no output: %s", outcome.error)
                    full_response = STREAM_FAILURE_MESSAGE
                    await callbacks.token(full_response)
                    messages.append(assistant_message(full_response, []))
                break

            full_response += outcome.text

            if (
                final_step
                or outcome.finish_reason != FINISH_TOOL_CALLS
                or not outcome.tool_calls
            ):
                if final_step and outcome.tool_calls:
                    logger.warning(
                        "Step limit %d reached, dropping %d tool calls",
                        self._max_steps, len(outcome.tool_calls),
                    )
                if outcome.text:
                    messages.append(assistant_message(outcome.text, []))
                await self._report_usage(messages, limits, callbacks)
                break

            messages.append(assistant_message(outcome.text, outcome.tool_calls))

            # One at a time, in the order the model returned them.
            for call in outcome.tool_calls:
                result = await self._execute_tool(dispatcher, call, callbacks)
                messages.append(tool_message(result))
                self._prune_if_needed(messages, limits)
                await self._report_usage(messages, limits, callbacks)

        await callbacks.complete(full_response)
        logger.info(
            "Turn done: agent=%s depth=%d messages=%d response=%d chars",
            self.name, depth, len(messages), len(full_response),
        )
        return messages

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_step(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        callbacks: AgentCallbacks,
    ) -> StepOutcome:
        """Run one streamed model call, forwarding text as it arrives."""
        outcome = StepOutcome()
        text_parts: list[str] = []
        try:
            stream = self._client.call_api_stream(
                model=self._model, messages=messages, tools=tools
            )
            async with aclosing(stream):
                async for event in stream:
                    if event.type == "error":
                        outcome.error = event.text
                        break
                    elif event.type == "text_delta":
                        text_parts.append(event.text)
                        await callbacks.token(event.text)
                    elif event.type == "tool_call" and event.tool_call is not None:
                        outcome.tool_calls.append(event.tool_call)
                    elif event.type == "done":
                        outcome.finish_reason = event.finish_reason
        except Exception as e:
            outcome.error = f"{type(e).__name__}: {e}"
        outcome.text = "".join(text_parts)
        return outcome

    # ------------------------------------------------------------------
    # Tool dispatch
    # ------------------------------------------------------------------

    def _turn_dispatcher(self, callbacks: AgentCallbacks, depth: int) -> ToolDispatcher:
        """Static tools plus delegation tools bound to this turn."""
        if not self._sub_agents or depth >= self._settings.max_delegation_depth:
            return self._dispatcher
        return self._dispatcher.with_tools(
            create_delegation_tool(
                sub_agent,
                callbacks,
                depth=depth,
                max_depth=self._settings.max_delegation_depth,
            )
            for sub_agent in self._sub_agents
        )

    async def _execute_tool(
        self,
        dispatcher: ToolDispatcher,
        call: ToolCall,
        callbacks: AgentCallbacks,
    ) -> ToolResult:
        await callbacks.tool_call_start(call.tool_name, call.arguments)
        start_time = time.monotonic()

        tool = dispatcher.get(call.tool_name)
        if tool is not None and tool.requires_approval and not await callbacks.approve(
            call.tool_name, call.arguments
        ):
            logger.info("Tool %s declined by user", call.tool_name)
            output, is_error = f"User declined to run {call.tool_name}.", True
        else:
            output, is_error = await dispatcher.dispatch(call.tool_name, call.arguments)

        await callbacks.tool_call_end(call.tool_name, output)
        return ToolResult(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            output=output,
            is_error=is_error,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def _prune_if_needed(self, messages: list[dict[str, Any]], limits: ModelLimits) -> None:
        """Trim old tool outputs when a turn grows past the threshold."""
        usage = self._compactor.estimator.estimate_messages(messages)
        if is_over_threshold(usage.total, limits.available_window, self._compactor.threshold):
            self._compactor.prune_tool_results(messages)

    async def _report_usage(
        self,
        messages: list[dict[str, Any]],
        limits: ModelLimits,
        callbacks: AgentCallbacks,
    ) -> None:
        if callbacks.on_token_usage is None:
            return
        usage = self._compactor.estimator.estimate_messages(messages)
        await callbacks.token_usage(TokenUsage(
            input_tokens=usage.input,
            output_tokens=usage.output,
            total_tokens=usage.total,
            context_window=limits.context_window,
            threshold=self._compactor.threshold,
            percentage=usage_percentage(usage.total, limits.available_window),
        ))
