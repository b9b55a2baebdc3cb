#!/usr/bin/env python3
"""Tests for usage extraction from complete and streamed bodies."""

from __future__ import annotations

from nim_proxy.middleware.telemetry.events import UsageTokens
from nim_proxy.middleware.telemetry.usage import (
    BodyUsageCollector,
    StreamUsageScanner,
    parse_usage_from_response,
    to_usage_tokens,
)


class TestParseUsage:
    def test_openai_usage(self):
        usage = parse_usage_from_response({
            "usage": {
                "prompt_tokens": 10,
                "completion_tokens": 20,
                "total_tokens": 30,
                "completion_tokens_details": {"reasoning_tokens": 7},
            }
        })
        assert usage == {"prompt": 10, "completion": 20, "total": 30, "reasoning": 7}

    def test_input_output_naming_and_computed_total(self):
        usage = parse_usage_from_response({"usage": {"input_tokens": 4, "output_tokens": 6}})
        assert usage == {"prompt": 4, "completion": 6, "total": 10, "reasoning": None}

    def test_missing_usage(self):
        assert parse_usage_from_response({"choices": []}) is None
        assert parse_usage_from_response({"usage": {}}) is None
        assert parse_usage_from_response("text") is None

    def test_to_usage_tokens(self):
        assert to_usage_tokens(None) is None
        assert to_usage_tokens({"prompt": 1, "completion": 2, "total": 3, "reasoning": None}) == UsageTokens(
            total=3, prompt=1, completion=2, reasoning=None
        )


class TestStreamUsageScanner:
    def test_keeps_last_usage_across_split_chunks(self):
        scanner = StreamUsageScanner()
        scanner.feed(b'data: {"choices":[{"delta":{"content":"a"}}]}\n\n')
        scanner.feed(b'data: {"choices":[],"usage":{"prompt_tokens":1,')
        assert scanner.usage is None
        scanner.feed(b'"completion_tokens":2,"total_tokens":3}}\n\ndata: [DONE]\n\n')
        assert scanner.usage == {"prompt": 1, "completion": 2, "total": 3, "reasoning": None}

    def test_no_usage_in_stream(self):
        scanner = StreamUsageScanner()
        scanner.feed("data: keep-alive\n\ndata: [DONE]\n\n")
        assert scanner.usage is None


class TestBodyUsageCollector:
    def test_collects_chunks(self):
        collector = BodyUsageCollector()
        collector.feed(b'{"usage":{"prompt_tokens":2,')
        collector.feed('"completion_tokens":3}}')
        assert collector.result() == ({"prompt": 2, "completion": 3, "total": 5, "reasoning": None}, False)

    def test_empty_body(self):
        assert BodyUsageCollector().result() == (None, False)

    def test_invalid_json_flags_parse_error(self):
        collector = BodyUsageCollector()
        collector.feed(b"<html>")
        assert collector.result() == (None, True)
