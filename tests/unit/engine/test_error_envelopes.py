#!/usr/bin/env python3
"""Unit tests for error envelopes and upstream error normalization."""

from __future__ import annotations

import pytest

from nim_proxy.engine.errors import (
    MISSING_FIELDS_MESSAGE,
    decode_body,
    error_envelope,
    upstream_error_message,
    validate_chat_payload,
)


def test_error_envelope_shape():
    assert error_envelope("boom", 500) == {
        "error": {"message": "boom", "type": "invalid_request_error", "code": 500}
    }
    assert error_envelope("x", 502, "models_error")["error"]["type"] == "models_error"


class TestDecodeBody:
    def test_json_bytes(self):
        assert decode_body(b'{"error": {"message": "bad"}}') == {"error": {"message": "bad"}}

    def test_plain_text(self):
        assert decode_body(b"Bad Gateway") == "Bad Gateway"

    def test_none(self):
        assert decode_body(None) is None


class TestUpstreamErrorMessage:
    def test_string_body(self):
        assert upstream_error_message("upstream exploded") == "upstream exploded"

    def test_nested_error_message(self):
        assert upstream_error_message({"error": {"message": "quota"}}) == "quota"

    def test_top_level_message(self):
        assert upstream_error_message({"message": "flat"}) == "flat"

    def test_exception_text(self):
        assert upstream_error_message(None, RuntimeError("connect failed")) == "connect failed"

    def test_fallback(self):
        assert upstream_error_message({}) == "Internal server error"
        assert upstream_error_message("", None, "other") == "other"


class TestValidateChatPayload:
    def test_valid_payload(self):
        assert validate_chat_payload({"model": "gpt-4", "messages": []}) is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            {},
            {"messages": []},
            {"model": "gpt-4"},
            {"model": "", "messages": []},
            {"model": 4, "messages": []},
            {"model": "gpt-4", "messages": "hi"},
        ],
    )
    def test_invalid_payloads(self, payload):
        assert validate_chat_payload(payload) == {
            "error": {"message": MISSING_FIELDS_MESSAGE, "type": "invalid_request_error", "code": 400}
        }
