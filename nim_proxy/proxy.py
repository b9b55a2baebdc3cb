#!/usr/bin/env python3
"""
Proxy startup for the NIM reasoning proxy.
"""

from __future__ import annotations

import argparse
import logging

from .config.models import ProxySettings


def start_proxy(args: argparse.Namespace, settings: ProxySettings) -> None:
    """Serve the proxy app with uvicorn until interrupted."""
    import uvicorn

    from .server.app import create_app

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
