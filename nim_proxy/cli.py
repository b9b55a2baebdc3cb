#!/usr/bin/env python3
"""
Command-line interface for the NIM reasoning proxy.
"""

from __future__ import annotations

import argparse
import os

LOG_LEVELS = ["critical", "error", "warning", "info", "debug"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the proxy."""
    parser = argparse.ArgumentParser(
        description=(
            "Start an OpenAI-compatible chat completions proxy in front of an "
            "NVIDIA NIM endpoint. Upstream, model aliases and reasoning display "
            "are configured through environment variables (or a .env file)."
        )
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host interface for the proxy.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "3000")),
        help="Port for the proxy (default: from PORT env var, else 3000).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=os.getenv("LOG_LEVEL", "info").lower(),
        choices=LOG_LEVELS,
        help="Logging level for the proxy and uvicorn.",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the effective settings as JSON and exit (API key masked).",
    )
    return parser.parse_args(argv)
