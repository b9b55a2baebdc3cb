#!/usr/bin/env python3
"""
FastAPI application factory for the NIM reasoning proxy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..config.models import ProxySettings
from ..middleware.registry import install_middlewares
from ..upstream.client import UpstreamClient
from .routes import SERVICE_NAME, router


def create_app(
    settings: ProxySettings,
    upstream: UpstreamClient | None = None,
    telemetry_sinks: list | None = None,
) -> FastAPI:
    """Build the proxy app around one immutable settings value and upstream client."""
    upstream = upstream or UpstreamClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await upstream.aclose()

    app = FastAPI(
        title=SERVICE_NAME,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.upstream = upstream
    app.include_router(router)
    install_middlewares(app, settings, sinks=telemetry_sinks)
    return app
