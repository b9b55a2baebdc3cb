#!/usr/bin/env python3
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from fastapi import Request

from ...config.models import ProxySettings


class TelemetrySwitch(Protocol):
    def enabled(self, request: Request) -> bool: ...


class EventSink(Protocol):
    def emit(self, event: object) -> None: ...


class StaticToggle:
    """Switch fixed at startup (TELEMETRY_ENABLE)."""

    def __init__(self, value: bool):
        self.value = value

    def enabled(self, request: Request) -> bool:
        return self.value


@dataclass(frozen=True)
class TelemetryConfig:
    """What the telemetry middleware needs: an on/off switch, alias lookup and sinks."""
    toggle: TelemetrySwitch
    model_resolver: Callable[[str], str]
    sinks: Sequence[EventSink] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls, settings: ProxySettings, sinks: Sequence[EventSink]) -> TelemetryConfig:
        return cls(
            toggle=StaticToggle(settings.telemetry_enabled),
            model_resolver=settings.resolve_model,
            sinks=tuple(sinks),
        )
