#!/usr/bin/env python3
"""Helpers shared by tests: SSE encoding/decoding and a recording upstream."""

from __future__ import annotations

import json
from typing import Callable

import httpx


def sse_events(text: str) -> list[str]:
    """Split an SSE body into event payloads (text after 'data: ')."""
    events = []
    for block in text.split("\n\n"):
        block = block.strip()
        if block.startswith("data: "):
            events.append(block[len("data: "):])
        elif block:
            events.append(block)
    return events


def sse_lines(*payloads) -> list[bytes]:
    """Encode payloads as upstream SSE events; strings are sent as-is."""
    chunks = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        chunks.append(f"data: {text}\n\n".encode("utf-8"))
    return chunks


def chunk(delta: dict, finish_reason=None, model: str = "deepseek-ai/deepseek-r1-0528") -> dict:
    return {
        "id": "chatcmpl-upstream",
        "object": "chat.completion.chunk",
        "created": 1,
        "model": model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


class UpstreamRecorder:
    """httpx.MockTransport handler that records requests and replays canned responses."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def bodies(self) -> list[dict]:
        return [json.loads(req.content) for req in self.requests]


def streaming_response(chunks: list[bytes], status_code: int = 200) -> httpx.Response:
    """Upstream SSE response whose body arrives in the given pieces."""
    async def body():
        for piece in chunks:
            yield piece

    return httpx.Response(status_code, headers={"content-type": "text/event-stream"}, content=body())


class RecordingStream(httpx.AsyncByteStream):
    """Upstream body that yields ``chunks``, optionally fails, and records being closed."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for piece in self.chunks:
            yield piece
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True
