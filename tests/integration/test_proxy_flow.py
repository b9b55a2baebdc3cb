#!/usr/bin/env python3
"""End-to-end flows: settings loaded from the environment through the app to a mocked NIM upstream."""

from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from nim_proxy.config.config import RuntimeConfig
from nim_proxy.config.parsing import load_settings
from nim_proxy.middleware.telemetry.events import ResponseCompleted
from nim_proxy.middleware.telemetry.sinks import InMemorySink
from nim_proxy.server.app import create_app
from nim_proxy.upstream.client import UpstreamClient
from tests.support import UpstreamRecorder, chunk, sse_events, streaming_response


@pytest.fixture
def env_settings(monkeypatch):
    monkeypatch.setenv("SKIP_DOTENV", "1")

    def _load(**values: str):
        return load_settings(RuntimeConfig(overrides=values))

    return _load


def _serve(settings, responder):
    recorder = UpstreamRecorder(responder)
    sink = InMemorySink()
    app = create_app(
        settings,
        upstream=UpstreamClient(settings, transport=httpx.MockTransport(recorder)),
        telemetry_sinks=[sink],
    )
    return app, recorder, sink


def test_configured_request_augmentation_reaches_upstream(env_settings):
    settings = env_settings(
        NIM_API_KEY="nvapi-int",
        NIM_API_BASE="https://nim.internal/v1",
        MODEL_MAP_OVERRIDES='{"reasoner": "qwen/qwq-32b"}',
        ENABLE_THINKING_MODE="1",
        NIM_EXTRA_PARAMS='{"top_p": 0.95}',
        NIM_MODEL_PARAMS='{"qwen/qwq-32b": {"max_tokens": 4096}}',
        NIM_MODEL_EXTRA_BODY='{"qwen/qwq-32b": {"chat_template_kwargs": {"detailed": true}}}',
    )
    completion = {"choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}]}
    app, recorder, _ = _serve(settings, lambda req: httpx.Response(200, json=completion))

    with TestClient(app) as client:
        response = client.post("/v1/chat/completions", json={
            "model": "reasoner",
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 10,
        })

    assert response.status_code == 200
    assert response.json()["model"] == "reasoner"
    assert str(recorder.requests[0].url) == "https://nim.internal/v1/chat/completions"
    assert recorder.bodies[0] == {
        "model": "qwen/qwq-32b",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.6,
        "max_tokens": 4096,
        "stream": False,
        "top_p": 0.95,
        "extra_body": {"chat_template_kwargs": {"thinking": True, "detailed": True}},
    }


def test_streamed_reasoning_with_custom_tags_and_fragmented_upstream(env_settings):
    settings = env_settings(
        NIM_API_KEY="nvapi-int",
        SHOW_REASONING_MODELS="r1",
        THINK_OPEN_TAG="<reasoning>",
        THINK_CLOSE_TAG="</reasoning>",
    )
    frames = [
        chunk({"role": "assistant", "content": None}),
        chunk({"reasoning_content": "étape 1. "}),
        chunk({"reasoning_content": "étape 2."}),
        chunk({"content": "Réponse"}),
        chunk({}, finish_reason="stop"),
        "[DONE]",
    ]
    raw = "".join(
        f"data: {frame if isinstance(frame, str) else json.dumps(frame, ensure_ascii=False)}\n\n" for frame in frames
    ).encode("utf-8")
    # Three-byte pieces split multi-byte characters across chunk boundaries
    pieces = [raw[i:i + 3] for i in range(0, len(raw), 3)]
    app, _, sink = _serve(settings, lambda req: streaming_response(pieces))

    with TestClient(app) as client:
        response = client.post("/v1/chat/completions", json={
            "model": "gpt-4",
            "messages": [{"role": "user", "content": "salut"}],
            "stream": True,
        })

    events = sse_events(response.text)
    assert events[-1] == "[DONE]"
    decoded = [json.loads(e) for e in events[:-1]]
    contents = [d["choices"][0]["delta"].get("content") for d in decoded]
    assert contents == [
        None,
        "<reasoning>\nétape 1. étape 2.\n</reasoning>\n\n",
        "Réponse",
        None,
    ]
    assert decoded[-1]["choices"][0]["finish_reason"] == "stop"
    assert decoded[1]["model"] == "gpt-4"
    assert len(sink.of_type(ResponseCompleted)) == 1


def test_models_and_health_share_settings(env_settings):
    settings = env_settings(NIM_API_KEY="nvapi-int", MODEL_MAP_OVERRIDES='{"house": "meta/llama-3.3-70b"}')
    app, _, _ = _serve(settings, lambda req: httpx.Response(200, json={"data": []}))

    with TestClient(app) as client:
        models = client.get("/v1/models").json()["data"]
        health = client.get("/health").json()

    assert "house" in [m["id"] for m in models]
    assert health["has_nim_key"] is True
    assert health["show_reasoning_allowlist"] == []
