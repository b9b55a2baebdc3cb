#!/usr/bin/env python3
"""
Per-request streaming translator.

Consumes upstream frames and yields downstream SSE events. When reasoning
display is on, reasoning deltas are held back and released as one delimited
block right before the first content-bearing chunk (or before [DONE] when no
content ever arrives). When it is off, reasoning is stripped from every delta.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, MutableMapping

from ..config.models import ReasoningTags
from .frames import FrameKind, ProtocolFrame, read_frames
from .reasoning import REASONING_FIELDS, extract_from_delta, has_content

DONE_EVENT = "data: [DONE]\n\n"

logger = logging.getLogger("nim_proxy.stream")


class SessionState(str, Enum):
    AWAITING_CONTENT = "awaiting_content"
    ACCUMULATING_REASONING = "accumulating_reasoning"
    REASONING_EMITTED = "reasoning_emitted"
    FORWARDING = "forwarding"
    CLOSED = "closed"


@dataclass
class ReasoningAccumulator:
    """Reasoning collected during one stream; sealed once emitted."""
    buffer: str = ""
    emitted: bool = False

    @property
    def pending(self) -> bool:
        return bool(self.buffer) and not self.emitted

    def append(self, text: str) -> bool:
        """Add text unless the block was already emitted. Returns whether it was kept."""
        if self.emitted or not text:
            return False
        self.buffer += text
        return True

    def seal(self) -> str:
        self.emitted = True
        return self.buffer


def encode_event(payload: Any) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'), ensure_ascii=False)}\n\n"


def _choices(payload: Any) -> list[Any]:
    if not isinstance(payload, dict):
        return []
    choices = payload.get("choices")
    if not isinstance(choices, list):
        return []
    return choices


def _first_choice(payload: Any) -> MutableMapping[str, Any] | None:
    choices = _choices(payload)
    if not choices or not isinstance(choices[0], dict):
        return None
    return choices[0]


class StreamTranslator:
    """State machine for one streaming session.

    AWAITING_CONTENT -> ACCUMULATING_REASONING -> REASONING_EMITTED
    -> FORWARDING -> CLOSED. After CLOSED every frame is ignored.
    """

    def __init__(
        self,
        requested_model: str,
        show_reasoning: bool,
        tags: ReasoningTags,
        fields: tuple[str, ...] = REASONING_FIELDS,
    ):
        self.requested_model = requested_model
        self.show_reasoning = show_reasoning
        self.tags = tags
        self.fields = fields
        self.state = SessionState.AWAITING_CONTENT
        self.accumulator = ReasoningAccumulator()
        self.suppressed_frames = 0
        self.dropped_reasoning_chars = 0

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def process(self, frame: ProtocolFrame) -> list[str]:
        """Translate one upstream frame into zero or more downstream events."""
        if self.closed:
            return []
        if frame.kind is FrameKind.TERMINAL:
            return self._terminate(send_done=True)
        if frame.kind is FrameKind.RAW:
            return [f"{frame.line}\n\n"]
        return self._process_payload(frame.payload)

    def finish(self) -> list[str]:
        """Close a stream whose upstream ended without a terminal sentinel."""
        if self.closed:
            return []
        return self._terminate(send_done=False)

    def _terminate(self, send_done: bool) -> list[str]:
        events = self._release_reasoning()
        if send_done:
            events.append(DONE_EVENT)
        self.state = SessionState.CLOSED
        logger.debug(json.dumps({
            "stream_closed": True,
            "done_sent": send_done,
            "show_reasoning": self.show_reasoning,
            "reasoning_chars": len(self.accumulator.buffer),
            "reasoning_emitted": self.accumulator.emitted,
            "suppressed_frames": self.suppressed_frames,
            "dropped_reasoning_chars": self.dropped_reasoning_chars,
        }, separators=(",", ":")))
        return events

    def _release_reasoning(self) -> list[str]:
        if not self.show_reasoning or not self.accumulator.pending:
            return []
        block = self.tags.wrap(self.accumulator.seal())
        self.state = SessionState.REASONING_EMITTED
        now = time.time()
        return [encode_event({
            "id": f"chunk-{int(now * 1000)}",
            "object": "chat.completion.chunk",
            "created": int(now),
            "model": self.requested_model,
            "choices": [{"index": 0, "delta": {"content": block}, "finish_reason": None}],
        })]

    def _scrub_other_choices(self, payload: Any) -> bool:
        """Strip reasoning from every choice after the first; only choice 0 feeds the block.

        Returns whether any of those choices still carries content or a finish_reason.
        """
        carries_output = False
        for choice in _choices(payload)[1:]:
            delta = choice.get("delta") if isinstance(choice, dict) else None
            if not isinstance(delta, dict):
                continue
            self.dropped_reasoning_chars += len(extract_from_delta(delta, self.fields))
            if delta.get("content") is None:
                delta["content"] = ""
            carries_output = carries_output or has_content(delta) or choice.get("finish_reason") is not None
        return carries_output

    def _process_payload(self, payload: Any) -> list[str]:
        others_carry_output = self._scrub_other_choices(payload)
        choice = _first_choice(payload)
        delta = choice.get("delta") if choice is not None else None
        if not isinstance(delta, dict):
            return [encode_event(payload)]

        reasoning = extract_from_delta(delta, self.fields)

        if not self.show_reasoning:
            if delta.get("content") is None:
                delta["content"] = ""
            if has_content(delta):
                self.state = SessionState.FORWARDING
            return [encode_event(payload)]

        if reasoning:
            if self.accumulator.append(reasoning):
                self.state = SessionState.ACCUMULATING_REASONING
            else:
                self.dropped_reasoning_chars += len(reasoning)

        events: list[str] = []
        if has_content(delta):
            events.extend(self._release_reasoning())
            self.state = SessionState.FORWARDING
        elif reasoning:
            if choice.get("finish_reason") is None and not others_carry_output:
                self.suppressed_frames += 1
                return []
            # Frames that finish or carry output for another choice are kept; reasoning goes out first
            events.extend(self._release_reasoning())

        events.append(encode_event(payload))
        return events


async def translate_stream(
    chunks: AsyncIterable[str | bytes],
    translator: StreamTranslator,
) -> AsyncIterator[str]:
    """Pull frames from ``chunks`` and yield downstream SSE events until closed."""
    frames = read_frames(chunks)
    try:
        async for frame in frames:
            for event in translator.process(frame):
                yield event
            if translator.closed:
                return
        for event in translator.finish():
            yield event
    finally:
        await frames.aclose()
