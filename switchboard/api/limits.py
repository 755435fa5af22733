"""Model context-window limits.

A ModelLimitsRegistry is built once at startup and passed by reference
to every component that needs it. Lookups never raise: unknown model
ids resolve to DEFAULT_LIMITS, which is deliberately small.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelLimits:
    """Context window and the share of it kept free for the reply."""

    model_id: str
    context_window: int
    reserved_output_tokens: int

    @property
    def available_window(self) -> int:
        """Tokens usable by the prompt once the reply budget is reserved."""
        return max(1, self.context_window - self.reserved_output_tokens)


DEFAULT_LIMITS = ModelLimits(
    model_id="default",
    context_window=16_000,
    reserved_output_tokens=4_096,
)

KNOWN_MODELS: tuple[ModelLimits, ...] = (
    ModelLimits("gpt-4o-mini", 128_000, 16_384),
    ModelLimits("gpt-4o", 128_000, 16_384),
    ModelLimits("gpt-4.1", 1_047_576, 32_768),
    ModelLimits("gpt-4.1-mini", 1_047_576, 32_768),
    ModelLimits("gpt-4.1-nano", 1_047_576, 32_768),
    ModelLimits("gpt-4-turbo", 128_000, 4_096),
    ModelLimits("gpt-3.5-turbo", 16_385, 4_096),
    ModelLimits("gpt-5", 400_000, 128_000),
    ModelLimits("gpt-5-mini", 400_000, 128_000),
    ModelLimits("gpt-5-nano", 400_000, 128_000),
    ModelLimits("o3", 200_000, 100_000),
    ModelLimits("o4-mini", 200_000, 100_000),
)


class ModelLimitsRegistry:
    """Read-only lookup from model id to ModelLimits.

    Exact ids win; otherwise the longest known id that prefixes the
    requested one is used, so dated snapshots such as
    "gpt-4o-mini-2024-07-18" resolve to "gpt-4o-mini".
    """

    def __init__(
        self,
        entries: Iterable[ModelLimits] = KNOWN_MODELS,
        default: ModelLimits = DEFAULT_LIMITS,
    ) -> None:
        self._entries: Mapping[str, ModelLimits] = MappingProxyType(
            {e.model_id: e for e in entries}
        )
        self._default = default

    @property
    def default(self) -> ModelLimits:
        return self._default

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._entries

    def limits_for(self, model_id: str) -> ModelLimits:
        """Resolve limits for model_id, falling back to the default."""
        exact = self._entries.get(model_id)
        if exact is not None:
            return exact

        candidates = [
            known for known in self._entries
            if model_id.startswith(known + "-")
        ]
        if candidates:
            return self._entries[max(candidates, key=len)]

        logger.warning(
            "Unknown model %r -- using default limits (window=%d, reserved=%d)",
            model_id,
            self._default.context_window,
            self._default.reserved_output_tokens,
        )
        return self._default
