#!/usr/bin/env python3
from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from .config import EventSink
from .events import ErrorRaised, ResponseCompleted, TelemetryEvent


def _ensure_visible(logger: logging.Logger) -> None:
    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    if not logger.handlers and not logging.getLogger().handlers:
        # Keep records visible even if the host never configured logging
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        logger.addHandler(handler)


class LoggerSink:
    """Writes one compact JSON line per finished request."""

    def __init__(self, name: str = "nim_proxy.telemetry"):
        self.logger = logging.getLogger(name)
        _ensure_visible(self.logger)

    def emit(self, event: Any) -> None:
        if isinstance(event, ResponseCompleted):
            level = logging.INFO
        elif isinstance(event, ErrorRaised):
            level = logging.WARNING
        else:
            return
        self.logger.log(level, json.dumps(event.to_dict(), separators=(",", ":"), default=str))


class InMemorySink:
    """Keeps events in a list; used by tests."""

    def __init__(self):
        self.events: list[Any] = []

    def emit(self, event: Any) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()

    def of_type(self, event_type: type[TelemetryEvent]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


class TelemetryPipeline:
    """Fan-out to all sinks; one failing sink never affects the others or the request."""

    def __init__(self, sinks: Sequence[EventSink]):
        self.sinks = list(sinks)
        self.logger = logging.getLogger("nim_proxy.telemetry.pipeline")

    def publish(self, event: Any) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                self.logger.warning(f"Telemetry sink {sink.__class__.__name__} failed: {e}")
