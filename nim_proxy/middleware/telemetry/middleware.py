#!/usr/bin/env python3
from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Any, AsyncIterator

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .config import TelemetryConfig
from .events import ErrorRaised, RequestReceived, ResponseCompleted
from .sinks import TelemetryPipeline
from .usage import BodyUsageCollector, StreamUsageScanner, parse_usage_from_response, to_usage_tokens

SSE_MEDIA_TYPE = "text/event-stream"


class _RequestContext:
    """Fields shared by every event of one request."""

    def __init__(self, timestamp: str, client_request_id: str | None, remote_addr: str,
                 upstream_model: str | None, start: float):
        self.timestamp = timestamp
        self.client_request_id = client_request_id
        self.remote_addr = remote_addr
        self.upstream_model = upstream_model
        self.start = start

    def elapsed(self) -> float:
        return time.perf_counter() - self.start


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Publishes request lifecycle events without holding response bodies back.

    - When ``toggle.enabled(request)`` is False the request passes through untouched.
    - Response bodies are observed through a tap on the body iterator; each chunk
      is forwarded as soon as it is produced and ResponseCompleted is published
      once the last chunk has gone out.
    """

    def __init__(self, app, config: TelemetryConfig):
        super().__init__(app)
        self.config = config
        self.pipeline = TelemetryPipeline(config.sinks)
        self.logger = logging.getLogger("nim_proxy.telemetry")

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            enabled = self.config.toggle.enabled(request)
        except Exception as e:
            # Fail-safe: a broken toggle never hides behavior
            self.logger.debug(f"Telemetry toggle failed, treating as enabled: {e}")
            enabled = True

        if not enabled:
            return await call_next(request)

        model_alias = await self._peek_model(request)
        upstream_model = self.config.model_resolver(model_alias) if model_alias else None
        context = _RequestContext(
            timestamp=datetime.now().astimezone().strftime("%a, %d %b %Y %H:%M:%S %z"),
            client_request_id=request.headers.get("x-request-id"),
            remote_addr=self._get_remote_addr(request),
            upstream_model=upstream_model,
            start=time.perf_counter(),
        )

        self.pipeline.publish(RequestReceived(
            timestamp=context.timestamp,
            method=request.method,
            path=request.url.path,
            model_alias=model_alias,
            upstream_model=upstream_model,
            client_request_id=context.client_request_id,
            remote_addr=context.remote_addr,
        ))

        try:
            response = await call_next(request)
        except Exception as e:
            self._publish_error(context, e, streaming=False, status_code=getattr(e, "status_code", 500))
            raise

        streaming = response.headers.get("content-type", "").startswith(SSE_MEDIA_TYPE)
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is not None:
            response.body_iterator = self._observe(body_iterator, response.status_code, streaming, context)
            return response

        # Plain responses already hold their body
        usage_dict, parse_error = self._parse_body(getattr(response, "body", b""))
        self._publish_completed(context, response.status_code, streaming, usage_dict, parse_error)
        return response

    async def _observe(
        self,
        body_iterator: AsyncIterator[Any],
        status_code: int,
        streaming: bool,
        context: _RequestContext,
    ) -> AsyncIterator[Any]:
        watcher = StreamUsageScanner() if streaming else BodyUsageCollector()
        try:
            async for chunk in body_iterator:
                watcher.feed(chunk)
                yield chunk
        except BaseException as e:
            self._publish_error(context, e, streaming=streaming, status_code=status_code)
            raise

        if streaming:
            usage_dict, parse_error = watcher.usage, False
        else:
            usage_dict, parse_error = watcher.result()
        self._publish_completed(context, status_code, streaming, usage_dict, parse_error)

    def _publish_completed(self, context: _RequestContext, status_code: int, streaming: bool,
                           usage_dict: dict | None, parse_error: bool) -> None:
        self.pipeline.publish(ResponseCompleted(
            timestamp=context.timestamp,
            duration_s=context.elapsed(),
            status_code=status_code,
            upstream_model=context.upstream_model,
            usage=to_usage_tokens(usage_dict),
            streaming=streaming,
            parse_error=parse_error,
            missing_usage=usage_dict is None,
            client_request_id=context.client_request_id,
            remote_addr=context.remote_addr,
        ))

    def _publish_error(self, context: _RequestContext, error: BaseException, streaming: bool,
                       status_code: int) -> None:
        self.pipeline.publish(ErrorRaised(
            timestamp=context.timestamp,
            duration_s=context.elapsed(),
            status_code=status_code,
            error_type=type(error).__name__,
            error_message=str(error),
            streaming=streaming,
            client_request_id=context.client_request_id,
            remote_addr=context.remote_addr,
        ))

    @staticmethod
    def _parse_body(body: bytes | None) -> tuple[dict | None, bool]:
        if not body:
            return None, False
        try:
            return parse_usage_from_response(json.loads(body.decode("utf-8", errors="ignore"))), False
        except json.JSONDecodeError:
            return None, True

    async def _peek_model(self, request: Request) -> str | None:
        """Read the model alias from a JSON request body, if there is one."""
        if request.method != "POST":
            return None
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        model = body.get("model") if isinstance(body, dict) else None
        return model if isinstance(model, str) and model else None

    def _get_remote_addr(self, request: Request) -> str:
        """Extract remote address respecting forwarded headers."""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
        if request.client and hasattr(request.client, "host"):
            return request.client.host
        return "unknown"
