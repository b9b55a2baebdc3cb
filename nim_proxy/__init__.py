"""OpenAI-compatible proxy for NVIDIA NIM with reasoning-aware response translation."""

__version__ = "0.1.0"
