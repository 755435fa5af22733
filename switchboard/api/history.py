"""History hygiene before a turn is replayed to the model."""

from __future__ import annotations

from typing import Any


def _assistant_is_replayable(msg: dict[str, Any]) -> bool:
    content = msg.get("content")
    if isinstance(content, str):
        return bool(content.strip())
    if isinstance(content, list):
        return len(content) > 0
    return False


def filter_compatible(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop history entries the model API cannot safely replay.

    - system, user and tool entries are always kept.
    - assistant entries are kept when they carry non-blank text or any
      content part. Tool-call-only turns must survive, otherwise the
      following tool entries reference call ids the API cannot find.
    - anything else (unknown roles, empty assistant turns) is dropped.

    Idempotent, and never removes an assistant tool call whose result
    is kept.
    """
    kept: list[dict[str, Any]] = []
    for msg in messages:
        role = msg.get("role")
        if role in ("system", "user", "tool"):
            kept.append(msg)
        elif role == "assistant" and _assistant_is_replayable(msg):
            kept.append(msg)
    return kept
