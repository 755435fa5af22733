"""Conversation compaction -- usage estimation, thresholds, summarization.

Two layers:
  Layer 1: Tool output pruning (in-turn, no LLM). Trims oversized
           tool results without touching tool_call ids.
  Layer 2: History compaction (turn start, LLM-powered). Replaces the
           whole non-system history with a summary exchange.

This module is independent of AgentRunner to avoid circular imports
and keep runner.py focused on orchestration.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Protocol

from switchboard.api.models import ApiResponse, extract_message_text
from switchboard.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.8

# ------------------------------------------------------------------
# Summarization prompt (co-located with compaction logic)
# ------------------------------------------------------------------

SUMMARIZATION_PROMPT = """\
You are a conversation summarizer. Your task is to create a concise summary \
of the conversation so far that preserves:

1. Key decisions and conclusions reached
2. Important context and facts mentioned
3. Any pending tasks or questions
4. The overall goal of the conversation

Be concise but complete. The summary should allow the conversation to \
continue naturally.

Conversation to summarize:
"""

SUMMARY_ACKNOWLEDGEMENT = (
    "I understand. I've reviewed the summary of our conversation and I'm "
    "ready to continue. How can I help you next?"
)


class CompactionError(RuntimeError):
    """Summarization produced nothing usable."""


# ------------------------------------------------------------------
# Protocol for API caller injection
# ------------------------------------------------------------------


class ApiCaller(Protocol):
    """Type-safe callable for ModelClient.call_api injection."""

    async def __call__(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ApiResponse: ...


# ------------------------------------------------------------------
# Threshold policy
# ------------------------------------------------------------------


def usage_percentage(used: int, window: int) -> float:
    """Fraction of window consumed, clamped to [0, 1]."""
    if window <= 0:
        return 1.0
    return min(1.0, max(0.0, used / window))


def is_over_threshold(used: int, window: int, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """True when used/window strictly exceeds threshold.

    window should be the prompt budget (context window minus the
    reserved reply tokens), not the raw context window.
    """
    if window <= 0:
        return True
    return used / window > threshold


# ------------------------------------------------------------------
# Token Estimator
# ------------------------------------------------------------------


@dataclass(frozen=True)
class UsageEstimate:
    input: int
    output: int
    total: int


class TokenEstimator:
    """Approximates token counts from character length.

    No tokenizer and no network: len(text) * ratio, rounded up, plus a
    fixed per-message overhead. The default ratio (0.3 tokens per char,
    about chars/3.3) sits above the usual chars/4 for English so the
    estimate errs high. Tool-call arguments and tool outputs are
    counted through extract_message_text.
    """

    def __init__(self, ratio: float = 0.3, message_overhead: int = 4) -> None:
        self._ratio = ratio
        self._overhead = message_overhead

    @property
    def ratio(self) -> float:
        """Tokens-per-char ratio."""
        return self._ratio

    def estimate(self, text: str | Any) -> int:
        """Estimate token count for text content."""
        if not isinstance(text, str):
            text = str(text)
        if not text:
            return 0
        return math.ceil(round(len(text) * self._ratio, 6))

    def estimate_message(self, message: dict[str, Any]) -> int:
        return self.estimate(extract_message_text(message)) + self._overhead

    def estimate_messages(self, messages: list[dict[str, Any]]) -> UsageEstimate:
        """Estimate usage for a message list, split by direction.

        Assistant entries count as output; everything else as input.
        """
        input_tokens = 0
        output_tokens = 0
        for msg in messages:
            tokens = self.estimate_message(msg)
            if msg.get("role") == "assistant":
                output_tokens += tokens
            else:
                input_tokens += tokens
        return UsageEstimate(
            input=input_tokens,
            output=output_tokens,
            total=input_tokens + output_tokens,
        )


# ------------------------------------------------------------------
# Conversation Compactor
# ------------------------------------------------------------------


class ConversationCompactor:
    """Manages tool result pruning (Layer 1) and history compaction (Layer 2).

    Owns a TokenEstimator instance; AgentRunner reads it via
    compactor.estimator for its usage snapshots.
    """

    def __init__(self, settings: Settings, call_api: ApiCaller) -> None:
        self._settings = settings
        self._call_api = call_api
        self.estimator = TokenEstimator(
            ratio=settings.token_ratio,
            message_overhead=settings.message_overhead_tokens,
        )

    @property
    def threshold(self) -> float:
        return self._settings.compaction_threshold

    # ------------------------------------------------------------------
    # Layer 1: Tool Output Pruning
    # ------------------------------------------------------------------

    @staticmethod
    def is_tool_result_message(msg: dict[str, Any]) -> bool:
        """Check if a message is a tool-role entry carrying tool results."""
        content = msg.get("content")
        return (
            msg.get("role") == "tool"
            and isinstance(content, list)
            and len(content) > 0
            and isinstance(content[0], dict)
            and content[0].get("type") == "tool_result"
        )

    def prune_tool_results(self, messages: list[dict[str, Any]]) -> int:
        """Soft-trim oversized outputs of older tool results.

        Replaces trimmed entries of messages with copies and returns the
        number of trimmed results; the original entry dicts are never
        modified. Keeps head + tail of each oversized output. Never
        removes messages or rewrites tool_call ids, so call/result
        pairing stays valid. The last keep_last_tool_results tool
        messages are protected.
        """
        if not self._settings.tool_pruning_enabled:
            return 0

        tool_indices = [
            i for i, msg in enumerate(messages)
            if self.is_tool_result_message(msg)
        ]
        if not tool_indices:
            return 0

        keep = self._settings.keep_last_tool_results
        protected = set(tool_indices[-keep:]) if keep > 0 else set()
        limit = self._settings.tool_soft_trim_chars
        head = self._settings.tool_soft_trim_head
        tail = self._settings.tool_soft_trim_tail

        trimmed = 0
        for idx in tool_indices:
            if idx in protected:
                continue
            parts = []
            changed = 0
            for item in messages[idx]["content"]:
                text = item.get("output", "")
                if not isinstance(text, str) or len(text) <= limit:
                    parts.append(item)
                    continue
                parts.append({
                    **item,
                    "output": (
                        f"{text[:head]}\n\n"
                        f"--- trimmed (kept {head} head + {tail} tail "
                        f"of {len(text)} chars) ---\n\n"
                        f"{text[-tail:]}"
                    ),
                })
                changed += 1
            if changed:
                # Entries may be shared with the caller's history.
                messages[idx] = {**messages[idx], "content": parts}
                trimmed += changed

        if trimmed:
            logger.info(
                "Pruned tool results: soft-trimmed=%d (total tool msgs=%d, protected=%d)",
                trimmed, len(tool_indices), len(protected),
            )
        return trimmed

    # ------------------------------------------------------------------
    # Layer 2: History Compaction
    # ------------------------------------------------------------------

    def should_compact(self, messages: list[dict[str, Any]], available_window: int) -> bool:
        """Check if compaction is needed before a turn."""
        if not self._settings.compaction_enabled:
            return False
        usage = self.estimator.estimate_messages(messages)
        return is_over_threshold(usage.total, available_window, self.threshold)

    async def compact(
        self,
        messages: list[dict[str, Any]],
        model_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Summarize messages into a user summary + assistant acknowledgement.

        System messages are excluded and NOT returned; the caller
        re-prepends its system prompt. Returns [] when nothing but
        system messages was given. API failures propagate: there is no
        fallback truncation.
        """
        conversation = [m for m in messages if m.get("role") != "system"]
        if not conversation:
            return []

        model = model_id or self._settings.summary_model
        start_time = time.monotonic()
        logger.info(
            "Compacting %d messages with %s", len(conversation), model
        )

        transcript = self._serialize_for_summary(conversation)
        response = await self._call_api(
            model=model,
            messages=[{"role": "user", "content": SUMMARIZATION_PROMPT + transcript}],
            tools=None,
        )
        summary = response.text.strip()
        if not summary:
            raise CompactionError("Summarization returned no text")

        compacted = [
            {
                "role": "user",
                "content": (
                    "[CONVERSATION SUMMARY]\n"
                    "The following is a summary of our conversation so far:\n\n"
                    f"{summary}\n\n"
                    "Please continue from where we left off."
                ),
            },
            {"role": "assistant", "content": SUMMARY_ACKNOWLEDGEMENT},
        ]

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Compacted %d messages -> 2 (%d chars summary, %d ms)",
            len(conversation), len(summary), duration_ms,
        )
        return compacted

    @staticmethod
    def _serialize_for_summary(messages: list[dict[str, Any]]) -> str:
        """Render messages as a role-tagged transcript."""
        return "\n\n".join(
            f"[{str(msg.get('role', '')).upper()}]: {extract_message_text(msg)}"
            for msg in messages
        )
