#!/usr/bin/env python3
"""Shared test fixtures for the NIM proxy tests."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from nim_proxy.config.config import runtime_config
from nim_proxy.config.models import ProxySettings
from nim_proxy.middleware.telemetry.sinks import InMemorySink
from nim_proxy.server.app import create_app
from nim_proxy.upstream.client import UpstreamClient
from tests.support import UpstreamRecorder


@pytest.fixture
def config_overrides():
    """Fixture for temporarily overriding configuration values in tests.

    Usage:
        def test_something(config_overrides):
            with config_overrides({"KEY": "value"}):
                # Test code that sees the overridden value
                pass
    """
    def _override(overrides: dict[str, str]):
        return runtime_config.override(overrides)

    return _override


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(
        api_key="nvapi-test",
        api_base="https://nim.test/v1",
        show_reasoning_models=("deepseek-r1",),
    )


@pytest.fixture
def telemetry_sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture
def build_app(telemetry_sink):
    """Build an app whose upstream is served by ``responder``; returns (app, recorder)."""
    def _build(settings: ProxySettings, responder: Callable[[httpx.Request], httpx.Response]):
        recorder = UpstreamRecorder(responder)
        upstream = UpstreamClient(settings, transport=httpx.MockTransport(recorder))
        app = create_app(settings, upstream=upstream, telemetry_sinks=[telemetry_sink])
        return app, recorder

    return _build
