"""Tests for filter_compatible -- which history entries may be replayed."""

import pytest

from switchboard.api.history import filter_compatible


def _assistant_call(call_id: str) -> dict:
    return {
        "role": "assistant",
        "content": [{
            "type": "tool_call", "tool_call_id": call_id,
            "tool_name": "search", "input": {"query": "x"},
        }],
    }


def _tool(call_id: str) -> dict:
    return {
        "role": "tool",
        "content": [{
            "type": "tool_result", "tool_call_id": call_id,
            "tool_name": "search", "output": "result",
        }],
    }


HISTORIES = [
    [],
    [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
    [
        {"role": "user", "content": "search"},
        _assistant_call("c1"),
        _tool("c1"),
        {"role": "assistant", "content": "done"},
    ],
    [
        {"role": "user", "content": ""},
        {"role": "assistant", "content": "   "},
        {"role": "assistant", "content": []},
        {"role": "assistant", "content": None},
        {"role": "developer", "content": "odd"},
        {"content": "no role"},
        _assistant_call("c2"),
        _tool("c2"),
    ],
]


class TestFilterCompatible:
    def test_keeps_user_system_and_tool(self):
        messages = [
            {"role": "system", "content": ""},
            {"role": "user", "content": ""},
            _tool("c1"),
        ]
        assert filter_compatible(messages) == messages

    def test_keeps_text_assistant(self):
        msg = {"role": "assistant", "content": "hello"}
        assert filter_compatible([msg]) == [msg]

    def test_keeps_tool_call_only_assistant(self):
        msg = _assistant_call("c1")
        assert filter_compatible([msg]) == [msg]

    def test_drops_blank_assistant(self):
        assert filter_compatible([
            {"role": "assistant", "content": "  \n"},
            {"role": "assistant", "content": []},
            {"role": "assistant", "content": None},
        ]) == []

    def test_drops_unknown_roles(self):
        assert filter_compatible([{"role": "developer", "content": "x"}, {"content": "x"}]) == []

    def test_preserves_order_and_identity(self):
        history = HISTORIES[2]
        result = filter_compatible(history)
        assert all(a is b for a, b in zip(result, history))

    def test_does_not_mutate_input(self):
        history = list(HISTORIES[3])
        filter_compatible(history)
        assert history == HISTORIES[3]

    @pytest.mark.parametrize("history", HISTORIES)
    def test_idempotent(self, history):
        once = filter_compatible(history)
        assert filter_compatible(once) == once

    @pytest.mark.parametrize("history", HISTORIES)
    def test_no_orphaned_tool_results(self, history):
        result = filter_compatible(history)
        seen: set[str] = set()
        for msg in result:
            if msg["role"] == "assistant" and isinstance(msg["content"], list):
                seen.update(p["tool_call_id"] for p in msg["content"] if p["type"] == "tool_call")
            if msg["role"] == "tool":
                for part in msg["content"]:
                    assert part["tool_call_id"] in seen
