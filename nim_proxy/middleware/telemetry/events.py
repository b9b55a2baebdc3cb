#!/usr/bin/env python3
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class UsageTokens:
    """Token counts extracted from responses."""
    total: int | None = None
    prompt: int | None = None
    completion: int | None = None
    reasoning: int | None = None

    def to_dict(self) -> dict[str, int | None]:
        return {
            "total_tokens": self.total,
            "prompt_tokens": self.prompt,
            "completion_tokens": self.completion,
            "reasoning_tokens": self.reasoning,
        }


@dataclass(frozen=True)
class TelemetryEvent:
    timestamp: str

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"event": self.event_type}
        for key, value in asdict(self).items():
            payload[key] = value
        usage = getattr(self, "usage", None)
        if isinstance(usage, UsageTokens):
            payload["usage"] = usage.to_dict()
        return payload


@dataclass(frozen=True)
class RequestReceived(TelemetryEvent):
    """Published when a request enters the proxy."""
    method: str = ""
    path: str = ""
    model_alias: str | None = None
    upstream_model: str | None = None
    client_request_id: str | None = None
    remote_addr: str | None = None


@dataclass(frozen=True)
class ResponseCompleted(TelemetryEvent):
    """Published once the full response body has been sent."""
    duration_s: float = 0.0
    status_code: int = 200
    upstream_model: str | None = None
    usage: UsageTokens | None = None
    streaming: bool = False
    parse_error: bool = False
    missing_usage: bool = False
    client_request_id: str | None = None
    remote_addr: str | None = None


@dataclass(frozen=True)
class ErrorRaised(TelemetryEvent):
    """Published when handling fails, including mid-stream failures."""
    duration_s: float = 0.0
    status_code: int = 500
    error_type: str = ""
    error_message: str = ""
    streaming: bool = False
    client_request_id: str | None = None
    remote_addr: str | None = None
