#!/usr/bin/env python3
"""
Incremental decoder turning upstream SSE chunks into protocol frames.
"""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class FrameKind(str, Enum):
    TERMINAL = "terminal"
    DATA = "data"
    RAW = "raw"


@dataclass(frozen=True)
class ProtocolFrame:
    """One upstream event line.

    ``payload`` holds the parsed JSON of DATA frames; ``line`` always keeps
    the original line text so RAW frames can be forwarded untouched.
    """
    kind: FrameKind
    line: str
    payload: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is FrameKind.TERMINAL


def classify_line(line: str) -> ProtocolFrame | None:
    """Classify one complete line; returns None for comments, blanks and other fields."""
    if not line.startswith(DATA_PREFIX):
        return None

    payload_text = line[len(DATA_PREFIX):].strip()
    if payload_text == DONE_SENTINEL:
        return ProtocolFrame(FrameKind.TERMINAL, line)

    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError:
        return ProtocolFrame(FrameKind.RAW, line)
    return ProtocolFrame(FrameKind.DATA, line, payload)


class StreamFrameReader:
    """Split arbitrarily chunked upstream text into frames.

    A trailing partial line is carried over to the next ``feed`` call, so a
    frame is only produced once its terminating line break has arrived.
    Bytes are decoded incrementally, which keeps multi-byte UTF-8 sequences
    intact when they straddle chunk boundaries.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: str | bytes) -> list[ProtocolFrame]:
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._decoder.decode(bytes(chunk))
        self._buffer += chunk

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._classify(lines)

    def close(self) -> list[ProtocolFrame]:
        """Flush the carry-over once the upstream has finished sending.

        An unterminated last line is kept only when it is a complete payload
        (the sentinel or valid JSON). Anything else is a cut-off line and is
        dropped rather than relayed as a raw frame.
        """
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if not remainder:
            return []
        return [frame for frame in self._classify([remainder]) if frame.kind is not FrameKind.RAW]

    @staticmethod
    def _classify(lines: list[str]) -> list[ProtocolFrame]:
        frames = []
        for line in lines:
            frame = classify_line(line.rstrip("\r"))
            if frame is not None:
                frames.append(frame)
        return frames


async def read_frames(chunks: AsyncIterable[str | bytes]) -> AsyncIterator[ProtocolFrame]:
    """Lazily yield frames from an async chunk source, in arrival order."""
    reader = StreamFrameReader()
    try:
        async for chunk in chunks:
            for frame in reader.feed(chunk):
                yield frame
        for frame in reader.close():
            yield frame
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
