#!/usr/bin/env python3
"""
Configuration models for the NIM reasoning proxy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Tuple

DEFAULT_API_BASE = "https://integrate.api.nvidia.com/v1"
DEFAULT_MAX_BODY_BYTES = 2 * 1024 * 1024
DEFAULT_TIMEOUT_S = 120.0

# Public OpenAI model names mapped to NIM model ids
DEFAULT_MODEL_MAPPING: Mapping[str, str] = MappingProxyType({
    "gpt-4o": "deepseek-ai/deepseek-v3.1",
    "gpt-4o-mini": "deepseek-ai/deepseek-v3.1-terminus",
    "gpt-4": "deepseek-ai/deepseek-r1-0528",
    "gpt-3.5-turbo": "meta/llama-3.1-8b-instruct",
})

_EMPTY: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class ReasoningTags:
    """Delimiters wrapped around surfaced reasoning text."""
    open: str = "<think>"
    close: str = "</think>"

    def __post_init__(self) -> None:
        if not self.open:
            raise ValueError("Reasoning open tag cannot be empty")
        if not self.close:
            raise ValueError("Reasoning close tag cannot be empty")

    def wrap(self, reasoning: str) -> str:
        """Return the reasoning block placed ahead of answer content."""
        return f"{self.open}\n{reasoning}\n{self.close}\n\n"


@dataclass(frozen=True)
class MergeFragments:
    """Global and per-resolved-model override trees for one merge target."""
    global_fragment: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    per_model: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: _EMPTY)

    def for_model(self, model_id: str) -> Mapping[str, Any] | None:
        return self.per_model.get(model_id)


@dataclass(frozen=True)
class ProxySettings:
    """Immutable process-wide settings, built once at startup.

    Every request reads from the same instance; nothing in the proxy mutates it.
    """
    api_base: str = DEFAULT_API_BASE
    api_key: str = ""
    model_mapping: Mapping[str, str] = field(default_factory=lambda: DEFAULT_MODEL_MAPPING)
    show_reasoning_models: Tuple[str, ...] = ()
    reasoning_tags: ReasoningTags = field(default_factory=ReasoningTags)
    enable_thinking_mode: bool = False
    request_fragments: MergeFragments = field(default_factory=MergeFragments)
    extra_body_fragments: MergeFragments = field(default_factory=MergeFragments)
    upstream_timeout_s: float | None = DEFAULT_TIMEOUT_S
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    cors_allow_origins: Tuple[str, ...] = ("*",)
    telemetry_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.api_base:
            raise ValueError("Upstream api_base cannot be empty")
        if self.max_body_bytes <= 0:
            raise ValueError("max_body_bytes must be positive")

    def resolve_model(self, alias: str) -> str:
        """Map a client-facing model name to the upstream model id."""
        return self.model_mapping.get(alias) or alias

    def should_show_reasoning(self, model_id: str | None) -> bool:
        """True when the upstream model id matches an allowlist token."""
        if not model_id or not self.show_reasoning_models:
            return False
        lowered = model_id.lower()
        return any(token in lowered for token in self.show_reasoning_models)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)
