"""Settings loading for the proxy."""

from .config import RuntimeConfig, runtime_config
from .models import MergeFragments, ProxySettings, ReasoningTags
from .parsing import load_settings

__all__ = [
    "MergeFragments",
    "ProxySettings",
    "ReasoningTags",
    "RuntimeConfig",
    "load_settings",
    "runtime_config",
]
