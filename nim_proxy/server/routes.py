#!/usr/bin/env python3
"""
OpenAI-compatible HTTP routes backed by the upstream NIM API.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ..config.models import ProxySettings
from ..engine.completion import translate_completion
from ..engine.errors import (
    MODELS_ERROR,
    decode_body,
    error_envelope,
    upstream_error_message,
    validate_chat_payload,
)
from ..engine.merge import build_upstream_request
from ..engine.streaming import StreamTranslator, translate_stream
from ..upstream.client import UpstreamClient

SERVICE_NAME = "OpenAI->NIM Proxy"
ALIAS_OWNER = "openai-nim-proxy-alias"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

router = APIRouter()
logger = logging.getLogger("nim_proxy.server")


def _log(level: int, **fields) -> None:
    logger.log(level, json.dumps(fields, separators=(",", ":")))


def _settings(request: Request) -> ProxySettings:
    return request.app.state.settings


def _upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def _upstream_failure(status: int | None, body=None, exc: BaseException | None = None) -> JSONResponse:
    code = status or 500
    message = upstream_error_message(body, exc)
    _log(logging.ERROR, event="proxy_error", status=code, message=message)
    return JSONResponse(error_envelope(message, code), status_code=code)


@router.get("/health")
async def health(request: Request) -> dict:
    settings = _settings(request)
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "thinking_mode": "ENABLED" if settings.enable_thinking_mode else "DISABLED",
        "show_reasoning_allowlist": list(settings.show_reasoning_models),
        "has_nim_key": settings.has_api_key,
    }


@router.get("/v1/models")
async def list_models(request: Request) -> Response:
    settings = _settings(request)
    try:
        upstream_models = await _upstream(request).list_models()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        message = upstream_error_message(decode_body(exc.response.content), exc, fallback="models error")
        _log(logging.ERROR, event="models_passthrough_error", status=status, message=message)
        return JSONResponse(error_envelope(message, status, MODELS_ERROR), status_code=status)
    except (httpx.HTTPError, ValueError) as exc:
        message = upstream_error_message(None, exc, fallback="models error")
        _log(logging.ERROR, event="models_passthrough_error", status=500, message=message)
        return JSONResponse(error_envelope(message, 500, MODELS_ERROR), status_code=500)

    created = int(time.time())
    aliases = [
        {"id": alias, "object": "model", "created": created, "owned_by": ALIAS_OWNER}
        for alias in settings.model_mapping
    ]
    return JSONResponse({"object": "list", "data": aliases + upstream_models})


async def _relay_stream(response: httpx.Response, translator: StreamTranslator) -> AsyncIterator[str]:
    """Forward translated upstream events; always releases the upstream response."""
    try:
        async for event in translate_stream(response.aiter_bytes(), translator):
            yield event
    except httpx.HTTPError as exc:
        # No mid-stream error frame exists in the protocol: just end the stream
        _log(logging.ERROR, event="stream_error", message=str(exc) or type(exc).__name__)
    except asyncio.CancelledError:
        _log(logging.DEBUG, event="client_disconnected", state=translator.state.value)
        raise
    finally:
        await response.aclose()


@router.post("/v1/chat/completions")
async def chat_completions(request: Request) -> Response:
    settings = _settings(request)

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None

    invalid = validate_chat_payload(payload)
    if invalid is not None:
        return JSONResponse(invalid, status_code=400)

    requested_model = payload["model"]
    upstream_model = settings.resolve_model(requested_model)
    body = build_upstream_request(payload, upstream_model, settings)
    show_reasoning = settings.should_show_reasoning(upstream_model)

    try:
        response = await _upstream(request).chat_completion(body)
    except httpx.HTTPError as exc:
        return _upstream_failure(None, exc=exc)

    if response.status_code >= 400:
        try:
            raw = await response.aread()
        except httpx.HTTPError as exc:
            return _upstream_failure(response.status_code, exc=exc)
        finally:
            await response.aclose()
        if response.status_code < 500:
            # Client-class upstream errors pass through untouched
            return Response(
                content=raw,
                status_code=response.status_code,
                media_type=response.headers.get("content-type", "application/json"),
            )
        return _upstream_failure(response.status_code, decode_body(raw))

    if body["stream"]:
        translator = StreamTranslator(requested_model, show_reasoning, settings.reasoning_tags)
        return StreamingResponse(
            _relay_stream(response, translator),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    try:
        raw = await response.aread()
    except httpx.HTTPError as exc:
        return _upstream_failure(None, exc=exc)
    finally:
        await response.aclose()

    return JSONResponse(
        translate_completion(decode_body(raw), requested_model, show_reasoning, settings.reasoning_tags)
    )


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    include_in_schema=False,
)
async def not_found(request: Request) -> JSONResponse:
    return JSONResponse(
        error_envelope(f"Endpoint {request.url.path} not found", 404),
        status_code=404,
    )
