"""Upstream NIM-compatible API access."""

from .client import UpstreamClient

__all__ = ["UpstreamClient"]
