"""Switchboard: context-bounded agent orchestration over a chat model API."""
