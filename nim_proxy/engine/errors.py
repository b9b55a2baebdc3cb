#!/usr/bin/env python3
"""
OpenAI-style error envelopes and upstream error message normalization.
"""

from __future__ import annotations

import json
from typing import Any

INVALID_REQUEST_ERROR = "invalid_request_error"
MODELS_ERROR = "models_error"
FALLBACK_MESSAGE = "Internal server error"
MISSING_FIELDS_MESSAGE = "Missing required fields: model, messages[]"


def error_envelope(message: str, code: int, error_type: str = INVALID_REQUEST_ERROR) -> dict[str, Any]:
    return {"error": {"message": message, "type": error_type, "code": code}}


def decode_body(raw: bytes | str | None) -> Any:
    """Best-effort decode of an upstream error body: JSON when possible, else text."""
    if raw is None:
        return None
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else raw
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def upstream_error_message(body: Any, exc: BaseException | None = None, fallback: str = FALLBACK_MESSAGE) -> str:
    """Pick the most useful message for an upstream failure.

    Order: a plain string body, ``error.message``, ``message``, the exception
    text, then ``fallback``.
    """
    if isinstance(body, str) and body:
        return body
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        if isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
    if exc is not None and str(exc):
        return str(exc)
    return fallback


def validate_chat_payload(payload: Any) -> dict[str, Any] | None:
    """Return an error envelope when the inbound chat request is unusable, else None."""
    if not isinstance(payload, dict):
        return error_envelope(MISSING_FIELDS_MESSAGE, 400)
    model = payload.get("model")
    if not isinstance(model, str) or not model or not isinstance(payload.get("messages"), list):
        return error_envelope(MISSING_FIELDS_MESSAGE, 400)
    return None
