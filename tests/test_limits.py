"""Tests for the model limits registry."""

import dataclasses
import logging

import pytest

from switchboard.api.limits import DEFAULT_LIMITS, ModelLimits, ModelLimitsRegistry


class TestModelLimits:
    def test_available_window_reserves_output(self):
        limits = ModelLimits("m", 10_000, 2_000)
        assert limits.available_window == 8_000

    def test_available_window_never_zero(self):
        assert ModelLimits("m", 100, 500).available_window == 1

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_LIMITS.context_window = 1  # type: ignore[misc]


class TestRegistry:
    def test_exact_match(self):
        registry = ModelLimitsRegistry()
        limits = registry.limits_for("gpt-4o-mini")
        assert limits.model_id == "gpt-4o-mini"
        assert limits.context_window == 128_000

    def test_dated_snapshot_resolves_to_longest_prefix(self):
        registry = ModelLimitsRegistry()
        assert registry.limits_for("gpt-4o-mini-2024-07-18").model_id == "gpt-4o-mini"
        assert registry.limits_for("gpt-4o-2024-08-06").model_id == "gpt-4o"

    def test_unknown_model_falls_back_without_raising(self, caplog):
        registry = ModelLimitsRegistry()
        with caplog.at_level(logging.WARNING, logger="switchboard.api.limits"):
            limits = registry.limits_for("totally-unknown-model")
        assert limits is DEFAULT_LIMITS
        assert "Unknown model" in caplog.text

    def test_default_is_conservative(self):
        registry = ModelLimitsRegistry()
        smallest_known = min(
            registry.limits_for(m).available_window for m in ("gpt-4o-mini", "gpt-3.5-turbo")
        )
        assert DEFAULT_LIMITS.available_window <= smallest_known

    def test_custom_entries_and_default(self):
        tiny = ModelLimits("tiny", 1_000, 100)
        fallback = ModelLimits("fallback", 500, 50)
        registry = ModelLimitsRegistry([tiny], default=fallback)
        assert registry.limits_for("tiny") is tiny
        assert registry.limits_for("other") is fallback
        assert "tiny" in registry
        assert "gpt-4o" not in registry

    def test_entries_not_mutable(self):
        registry = ModelLimitsRegistry()
        with pytest.raises(TypeError):
            registry._entries["gpt-4o"] = DEFAULT_LIMITS  # type: ignore[index]
