#!/usr/bin/env python3
"""
Main entry point for the NIM reasoning proxy.
"""

from __future__ import annotations

import json
import sys
from typing import NoReturn

from .cli import parse_args
from .config.config import runtime_config
from .config.models import ProxySettings
from .config.parsing import describe_settings, load_settings
from .proxy import start_proxy


def get_startup_message(args, settings: ProxySettings) -> str:
    """Generate the startup banner."""
    allowlist = ", ".join(settings.show_reasoning_models) or "OFF"
    thinking = "ENABLED" if settings.enable_thinking_mode else "DISABLED"
    return "\n".join([
        f"OpenAI->NIM Proxy running on {args.host}:{args.port}",
        f"Health: http://localhost:{args.port}/health",
        f"Thinking mode: {thinking}",
        f"Reasoning allowlist: {allowlist}",
    ])


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the proxy."""
    runtime_config.ensure_loaded()
    args = parse_args(argv)

    try:
        settings = load_settings(runtime_config)
    except ValueError as error:
        print(f"ERROR: {error}", file=sys.stderr)
        sys.exit(1)

    if args.print_config:
        print(json.dumps(describe_settings(settings), indent=2))
        sys.exit(0)

    if not settings.has_api_key:
        print(
            "WARNING: NIM_API_KEY is not set. Upstream calls may fail authentication.",
            file=sys.stderr,
        )

    print(get_startup_message(args, settings))
    start_proxy(args, settings)
    sys.exit(0)


if __name__ == "__main__":
    main()
