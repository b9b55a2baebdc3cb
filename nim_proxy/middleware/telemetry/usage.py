#!/usr/bin/env python3
from __future__ import annotations

import json
from typing import Any

from ...engine.frames import FrameKind, StreamFrameReader
from .events import UsageTokens


def parse_usage_from_response(response_json: Any) -> dict | None:
    """Normalize usage fields across providers."""
    if not isinstance(response_json, dict):
        return None
    usage = response_json.get("usage")
    if not isinstance(usage, dict) or not usage:
        return None
    normalized = {}
    normalized["prompt"] = usage.get("prompt_tokens") or usage.get("input_tokens", 0)
    normalized["completion"] = usage.get("completion_tokens") or usage.get("output_tokens", 0)
    if "total_tokens" in usage:
        normalized["total"] = usage["total_tokens"]
    else:
        normalized["total"] = normalized["prompt"] + normalized["completion"]
    details = usage.get("completion_tokens_details") or usage.get("output_token_details")
    normalized["reasoning"] = details.get("reasoning_tokens") if isinstance(details, dict) else None
    return normalized


def to_usage_tokens(usage_dict: dict | None) -> UsageTokens | None:
    if usage_dict is None:
        return None
    return UsageTokens(
        total=usage_dict.get("total"),
        prompt=usage_dict.get("prompt"),
        completion=usage_dict.get("completion"),
        reasoning=usage_dict.get("reasoning"),
    )


class StreamUsageScanner:
    """Watch SSE chunks as they pass by and remember the last usage block seen."""

    def __init__(self) -> None:
        self._reader = StreamFrameReader()
        self.usage: dict | None = None

    def feed(self, chunk: str | bytes) -> None:
        for frame in self._reader.feed(chunk):
            if frame.kind is FrameKind.DATA:
                self.usage = parse_usage_from_response(frame.payload) or self.usage


class BodyUsageCollector:
    """Collect a non-streamed JSON body and parse its usage once complete."""

    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def feed(self, chunk: str | bytes) -> None:
        self._parts.append(chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk))

    def result(self) -> tuple[dict | None, bool]:
        """Return (usage, parse_error)."""
        body = b"".join(self._parts)
        if not body:
            return None, False
        try:
            payload = json.loads(body.decode("utf-8", errors="ignore"))
        except json.JSONDecodeError:
            return None, True
        return parse_usage_from_response(payload), False
