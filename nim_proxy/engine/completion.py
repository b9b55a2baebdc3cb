#!/usr/bin/env python3
"""
Single-pass translation of a complete upstream chat completion.
"""

from __future__ import annotations

import time
from typing import Any, Mapping

from ..config.models import ReasoningTags
from .reasoning import REASONING_FIELDS, extract_from_message

ZERO_USAGE = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


def _translate_choice(
    choice: Any,
    position: int,
    show_reasoning: bool,
    tags: ReasoningTags,
    fields: tuple[str, ...],
) -> dict[str, Any]:
    choice = choice if isinstance(choice, Mapping) else {}
    message = choice.get("message")
    message = message if isinstance(message, Mapping) else {}

    role = message.get("role") or "assistant"
    content = message.get("content") or ""
    if show_reasoning:
        reasoning = extract_from_message(message, fields)
        if reasoning:
            content = tags.wrap(reasoning) + content

    index = choice.get("index")
    return {
        "index": index if index is not None else position,
        "message": {"role": role, "content": content},
        "finish_reason": choice.get("finish_reason") or "stop",
    }


def translate_completion(
    upstream: Any,
    requested_model: str,
    show_reasoning: bool,
    tags: ReasoningTags,
    fields: tuple[str, ...] = REASONING_FIELDS,
) -> dict[str, Any]:
    """Rebuild an OpenAI chat.completion from an upstream response body.

    The envelope always echoes ``requested_model``. Reasoning fields never
    reach the output; when ``show_reasoning`` is set the first one found is
    prepended to the choice content as a delimited block.
    """
    body = upstream if isinstance(upstream, Mapping) else {}
    choices = body.get("choices")
    if not isinstance(choices, list):
        choices = []

    now = time.time()
    return {
        "id": f"chatcmpl-{int(now * 1000)}",
        "object": "chat.completion",
        "created": int(now),
        "model": requested_model,
        "choices": [
            _translate_choice(choice, position, show_reasoning, tags, fields)
            for position, choice in enumerate(choices)
        ],
        "usage": body.get("usage") or dict(ZERO_USAGE),
    }
