#!/usr/bin/env python3
"""
Middleware rejecting request bodies above the configured size.
"""
from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..config.models import DEFAULT_MAX_BODY_BYTES
from ..engine.errors import error_envelope

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Answer 413 with an OpenAI-style error when a request body is too large."""

    def __init__(self, app, max_body_bytes: int = DEFAULT_MAX_BODY_BYTES):
        """Initialize body size limit middleware.

        Args:
            app: ASGI application instance
            max_body_bytes: Largest accepted request body in bytes
        """
        super().__init__(app)
        self.max_body_bytes = max_body_bytes
        self.logger = logging.getLogger("nim_proxy.filter")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.method in BODY_METHODS:
            size = self._declared_size(request)
            if size is None:
                # Chunked upload: measure what actually arrived
                size = len(await request.body())
            if size > self.max_body_bytes:
                return self._reject(request, size)

        return await call_next(request)

    @staticmethod
    def _declared_size(request: Request) -> int | None:
        declared = request.headers.get("content-length")
        if declared is None:
            return None
        try:
            return int(declared)
        except ValueError:
            return None

    def _reject(self, request: Request, size: int) -> JSONResponse:
        log_msg = {"rejected": "body_too_large", "size": size, "limit": self.max_body_bytes}
        client_request_id = request.headers.get("x-request-id")
        if client_request_id:
            log_msg["client_request_id"] = client_request_id
        self.logger.debug(json.dumps(log_msg, separators=(",", ":")))
        return JSONResponse(
            error_envelope(f"Request body exceeds {self.max_body_bytes} bytes", 413),
            status_code=413,
        )
