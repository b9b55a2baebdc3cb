#!/usr/bin/env python3
from __future__ import annotations

from starlette.middleware.cors import CORSMiddleware

from ..config.models import ProxySettings
from .body_limit import BodySizeLimitMiddleware
from .telemetry.config import TelemetryConfig
from .telemetry.middleware import TelemetryMiddleware
from .telemetry.sinks import LoggerSink


def install_middlewares(app, settings: ProxySettings, sinks=None) -> None:
    # Middleware executes in reverse order of installation: telemetry is added
    # first so it runs closest to the routes and sees only accepted requests.
    if sinks is None:
        sinks = [LoggerSink()] if settings.telemetry_enabled else []

    config = TelemetryConfig.from_settings(settings, sinks)
    app.add_middleware(TelemetryMiddleware, config=config)
    app.state.telemetry_config = config

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

    # CORS last so it runs first and also decorates 413 rejections
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
