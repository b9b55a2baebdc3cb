#!/usr/bin/env python3
"""
Locate and strip provider reasoning fields from chat messages and deltas.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping

# Recognized reasoning keys in priority order. New providers append here.
REASONING_FIELDS: tuple[str, ...] = (
    "reasoning_content",
    "reasoning",
    "thinking",
    "thinking_content",
    "reasoning_text",
)


def extract_from_delta(
    delta: MutableMapping[str, Any],
    fields: tuple[str, ...] = REASONING_FIELDS,
) -> str:
    """Remove every recognized reasoning field from ``delta``.

    Returns the non-empty string values concatenated in field order. Fields
    are removed even when empty or not strings so they never reach the client.
    """
    collected = []
    for name in fields:
        if name not in delta:
            continue
        value = delta.pop(name)
        if isinstance(value, str) and value:
            collected.append(value)
    return "".join(collected)


def extract_from_message(
    message: Mapping[str, Any],
    fields: tuple[str, ...] = REASONING_FIELDS,
) -> str:
    """Return the first non-empty reasoning string in a complete message, else ''."""
    for name in fields:
        value = message.get(name)
        if isinstance(value, str) and value:
            return value
    return ""


def has_content(delta: Mapping[str, Any]) -> bool:
    content = delta.get("content")
    return isinstance(content, str) and len(content) > 0
