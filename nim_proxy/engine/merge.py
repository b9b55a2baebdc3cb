#!/usr/bin/env python3
"""
Recursive override merging and upstream request construction.

Trees are JSON-like: mappings, sequences (lists or tuples) and scalars.
Mappings merge key by key; everything else, sequences included, is replaced.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Sequence

from ..config.models import ProxySettings

DEFAULT_TEMPERATURE = 0.6
DEFAULT_MAX_TOKENS = 1024

THINKING_HINT = {"chat_template_kwargs": {"thinking": True}}


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def clone_tree(value: Any) -> Any:
    """Return a mutable deep copy of a JSON-like tree.

    Read-only mappings become dicts and tuples become lists, so frozen
    configuration fragments can be merged without being touched.
    """
    if isinstance(value, Mapping):
        return {key: clone_tree(item) for key, item in value.items()}
    if _is_sequence(value):
        return [clone_tree(item) for item in value]
    return value


def deep_merge(target: MutableMapping[str, Any], source: Mapping[str, Any] | None) -> MutableMapping[str, Any]:
    """Overlay ``source`` onto ``target`` in place and return ``target``.

    Nested mappings on both sides merge recursively; any other source value
    replaces the target value outright. Source subtrees are inserted as-is,
    so pass a clone of anything that must not end up shared.
    """
    if not source:
        return target

    for key, value in source.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, MutableMapping):
            deep_merge(current, value)
        else:
            target[key] = value
    return target


def _merge_fragment(target: MutableMapping[str, Any], fragment: Mapping[str, Any] | None) -> None:
    if fragment:
        deep_merge(target, clone_tree(fragment))


def _number_or(value: Any, default: float | int) -> Any:
    # bool is an int subclass but never a valid sampling number
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return default


def build_upstream_request(
    payload: Mapping[str, Any],
    upstream_model: str,
    settings: ProxySettings,
) -> dict[str, Any]:
    """Build the upstream chat request body from a validated client payload.

    Precedence, lowest to highest: base request, thinking hint, global
    top-level params, per-model top-level params, global extra_body,
    per-model extra_body.
    """
    request: dict[str, Any] = {
        "model": upstream_model,
        "messages": payload["messages"],
        "temperature": _number_or(payload.get("temperature"), DEFAULT_TEMPERATURE),
        "max_tokens": _number_or(payload.get("max_tokens"), DEFAULT_MAX_TOKENS),
        "stream": bool(payload.get("stream")),
    }

    extra_body: dict[str, Any] = {}
    if settings.enable_thinking_mode:
        deep_merge(extra_body, clone_tree(THINKING_HINT))

    _merge_fragment(request, settings.request_fragments.global_fragment)
    _merge_fragment(request, settings.request_fragments.for_model(upstream_model))

    existing = request.pop("extra_body", None)
    if isinstance(existing, Mapping):
        # extra_body supplied through top-level params still layers over the hint
        deep_merge(extra_body, existing)
    _merge_fragment(extra_body, settings.extra_body_fragments.global_fragment)
    _merge_fragment(extra_body, settings.extra_body_fragments.for_model(upstream_model))

    if extra_body:
        request["extra_body"] = extra_body
    return request
