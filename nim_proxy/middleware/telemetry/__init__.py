from .config import StaticToggle, TelemetryConfig
from .events import ErrorRaised, RequestReceived, ResponseCompleted, UsageTokens
from .middleware import TelemetryMiddleware
from .sinks import InMemorySink, LoggerSink, TelemetryPipeline

__all__ = [
    "ErrorRaised",
    "InMemorySink",
    "LoggerSink",
    "RequestReceived",
    "ResponseCompleted",
    "StaticToggle",
    "TelemetryConfig",
    "TelemetryMiddleware",
    "TelemetryPipeline",
    "UsageTokens",
]
