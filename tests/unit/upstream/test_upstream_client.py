#!/usr/bin/env python3
"""Tests for the upstream HTTP client."""

from __future__ import annotations

import json

import httpx
import pytest

from nim_proxy.config.models import ProxySettings
from nim_proxy.upstream.client import UpstreamClient
from tests.support import UpstreamRecorder, sse_lines, streaming_response


def _client(responder, **settings_kwargs) -> tuple[UpstreamClient, UpstreamRecorder]:
    settings = ProxySettings(api_key="nvapi-k", api_base="https://nim.test/v1", **settings_kwargs)
    recorder = UpstreamRecorder(responder)
    return UpstreamClient(settings, transport=httpx.MockTransport(recorder)), recorder


@pytest.mark.asyncio
class TestUpstreamClient:
    async def test_chat_completion_posts_body_with_auth(self):
        client, recorder = _client(lambda req: httpx.Response(200, json={"choices": []}))
        response = await client.chat_completion({"model": "m", "messages": [], "stream": False})
        try:
            assert response.status_code == 200
            assert json.loads(await response.aread()) == {"choices": []}
        finally:
            await response.aclose()
            await client.aclose()

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://nim.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer nvapi-k"
        assert request.headers["content-type"] == "application/json"
        assert recorder.bodies[0] == {"model": "m", "messages": [], "stream": False}

    async def test_chat_completion_returns_unread_stream(self):
        client, _ = _client(lambda req: streaming_response(sse_lines({"a": 1}, "[DONE]")))
        response = await client.chat_completion({"model": "m", "messages": [], "stream": True})
        try:
            pieces = [piece async for piece in response.aiter_bytes()]
        finally:
            await response.aclose()
            await client.aclose()
        assert b"".join(pieces) == b'data: {"a": 1}\n\ndata: [DONE]\n\n'

    async def test_list_models_unwraps_data(self):
        client, recorder = _client(lambda req: httpx.Response(200, json={"data": [{"id": "x"}]}))
        try:
            assert await client.list_models() == [{"id": "x"}]
        finally:
            await client.aclose()
        assert recorder.requests[0].url.path == "/v1/models"

    async def test_list_models_accepts_bare_list(self):
        client, _ = _client(lambda req: httpx.Response(200, json=[{"id": "y"}]))
        try:
            assert await client.list_models() == [{"id": "y"}]
        finally:
            await client.aclose()

    async def test_list_models_unexpected_shape_is_empty(self):
        client, _ = _client(lambda req: httpx.Response(200, json={"object": "list"}))
        try:
            assert await client.list_models() == []
        finally:
            await client.aclose()

    async def test_list_models_raises_on_error_status(self):
        client, _ = _client(lambda req: httpx.Response(500, json={"error": {"message": "down"}}))
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.list_models()
        finally:
            await client.aclose()


def test_timeout_configuration():
    client, _ = _client(lambda req: httpx.Response(200), upstream_timeout_s=None)
    timeout = client._client.timeout
    assert timeout.read is None
    assert timeout.connect == 10.0
