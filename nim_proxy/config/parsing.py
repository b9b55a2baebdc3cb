#!/usr/bin/env python3
"""
Environment parsing for the NIM reasoning proxy settings.
"""

from __future__ import annotations

import json
import logging
import sys
from types import MappingProxyType
from typing import Any, Mapping

from .config import RuntimeConfig, runtime_config
from .models import (
    DEFAULT_API_BASE,
    DEFAULT_MAX_BODY_BYTES,
    DEFAULT_MODEL_MAPPING,
    DEFAULT_TIMEOUT_S,
    MergeFragments,
    ProxySettings,
    ReasoningTags,
)

logger = logging.getLogger("nim_proxy.config")


def _warn(message: str) -> None:
    print(f"WARNING: {message}", file=sys.stderr)


def freeze_tree(value: Any) -> Any:
    """Return a read-only copy of a JSON-like tree (mappings and lists)."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_tree(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_tree(item) for item in value)
    return value


def _load_json_object(config: RuntimeConfig, key: str) -> dict[str, Any] | None:
    """Read an env var holding a JSON object; invalid or non-object values are ignored."""
    try:
        value = config.get_json(key)
    except json.JSONDecodeError:
        _warn(f"Invalid {key} JSON. Ignoring.")
        return None
    if value is None:
        return None
    if not isinstance(value, dict):
        _warn(f"{key} must be a JSON object. Ignoring.")
        return None
    return value


def parse_model_mapping(config: RuntimeConfig) -> Mapping[str, str]:
    """Built-in alias table with MODEL_MAP_OVERRIDES layered on top."""
    overrides = _load_json_object(config, "MODEL_MAP_OVERRIDES")
    if not overrides:
        return DEFAULT_MODEL_MAPPING

    mapping = dict(DEFAULT_MODEL_MAPPING)
    for alias, upstream in overrides.items():
        if not isinstance(upstream, str) or not upstream:
            _warn(f"MODEL_MAP_OVERRIDES entry '{alias}' must map to a model id string. Ignoring.")
            continue
        mapping[alias] = upstream
    logger.info(json.dumps({"loaded": "MODEL_MAP_OVERRIDES", "model_mapping": mapping}, separators=(",", ":")))
    return MappingProxyType(mapping)


def parse_fragments(config: RuntimeConfig, global_key: str, per_model_key: str) -> MergeFragments:
    """Load a global fragment and a {model_id: fragment} table from the environment."""
    global_fragment = _load_json_object(config, global_key) or {}
    per_model_raw = _load_json_object(config, per_model_key) or {}

    per_model: dict[str, Any] = {}
    for model_id, fragment in per_model_raw.items():
        if not isinstance(fragment, dict):
            _warn(f"{per_model_key} entry '{model_id}' must be a JSON object. Ignoring.")
            continue
        per_model[model_id] = fragment

    return MergeFragments(
        global_fragment=freeze_tree(global_fragment),
        per_model=freeze_tree(per_model),
    )


def parse_show_reasoning_models(config: RuntimeConfig) -> tuple[str, ...]:
    """Allowlist tokens, lower-cased for case-insensitive substring matching."""
    return tuple(token.lower() for token in config.get_list("SHOW_REASONING_MODELS"))


def load_settings(config: RuntimeConfig | None = None) -> ProxySettings:
    """Build the immutable ProxySettings from environment variables.

    Raises:
        ValueError: If a numeric setting cannot be parsed or a value is out of range.
    """
    source = config or runtime_config
    source.ensure_loaded()

    timeout_s = source.get_float("NIM_TIMEOUT_S", DEFAULT_TIMEOUT_S)
    if timeout_s is not None and timeout_s <= 0:
        # Non-positive timeout disables the read timeout
        timeout_s = None

    return ProxySettings(
        api_base=(source.get_str("NIM_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
        api_key=source.get_str("NIM_API_KEY", "") or "",
        model_mapping=parse_model_mapping(source),
        show_reasoning_models=parse_show_reasoning_models(source),
        reasoning_tags=ReasoningTags(
            open=source.get_str("THINK_OPEN_TAG") or "<think>",
            close=source.get_str("THINK_CLOSE_TAG") or "</think>",
        ),
        enable_thinking_mode=source.get_bool("ENABLE_THINKING_MODE", False),
        request_fragments=parse_fragments(source, "NIM_EXTRA_PARAMS", "NIM_MODEL_PARAMS"),
        extra_body_fragments=parse_fragments(source, "NIM_EXTRA_BODY", "NIM_MODEL_EXTRA_BODY"),
        upstream_timeout_s=timeout_s,
        max_body_bytes=source.get_int("MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
        cors_allow_origins=tuple(source.get_list("CORS_ALLOW_ORIGINS")) or ("*",),
        telemetry_enabled=source.get_bool("TELEMETRY_ENABLE", True),
    )


def describe_settings(settings: ProxySettings) -> dict[str, Any]:
    """JSON-friendly view of the settings with the API key masked."""
    def thaw(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: thaw(item) for key, item in value.items()}
        if isinstance(value, tuple):
            return [thaw(item) for item in value]
        return value

    return {
        "api_base": settings.api_base,
        "api_key": "***" if settings.has_api_key else None,
        "model_mapping": thaw(settings.model_mapping),
        "show_reasoning_models": list(settings.show_reasoning_models),
        "think_open_tag": settings.reasoning_tags.open,
        "think_close_tag": settings.reasoning_tags.close,
        "enable_thinking_mode": settings.enable_thinking_mode,
        "extra_params": thaw(settings.request_fragments.global_fragment),
        "model_params": thaw(settings.request_fragments.per_model),
        "extra_body": thaw(settings.extra_body_fragments.global_fragment),
        "model_extra_body": thaw(settings.extra_body_fragments.per_model),
        "upstream_timeout_s": settings.upstream_timeout_s,
        "max_body_bytes": settings.max_body_bytes,
        "cors_allow_origins": list(settings.cors_allow_origins),
        "telemetry_enabled": settings.telemetry_enabled,
    }
