#!/usr/bin/env python3
"""
HTTP client for the upstream NIM-compatible API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config.models import ProxySettings

CONNECT_TIMEOUT_S = 10.0


class UpstreamClient:
    """Thin wrapper around one shared httpx.AsyncClient.

    Args:
        settings: Proxy settings supplying base URL, API key and timeout.
        transport: Optional httpx transport, mainly for tests (httpx.MockTransport).
    """

    def __init__(self, settings: ProxySettings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.logger = logging.getLogger("nim_proxy.upstream")
        self._client = httpx.AsyncClient(
            base_url=settings.api_base,
            timeout=httpx.Timeout(settings.upstream_timeout_s, connect=CONNECT_TIMEOUT_S),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }

    async def chat_completion(self, body: dict[str, Any]) -> httpx.Response:
        """POST a chat completion and return the response with its body unread.

        The caller owns the response and must ``aclose()`` it.
        """
        request = self._client.build_request(
            "POST",
            "/chat/completions",
            json=body,
            headers=self._headers(),
        )
        self.logger.debug(f"POST {request.url} model={body.get('model')} stream={body.get('stream')}")
        return await self._client.send(request, stream=True)

    async def list_models(self) -> list[Any]:
        """Return the upstream model list.

        Raises:
            httpx.HTTPStatusError: If the upstream responds with an error status.
            httpx.HTTPError: On transport failures.
        """
        response = await self._client.get("/models", headers=self._headers())
        response.raise_for_status()
        payload = response.json()
        if isinstance(payload, dict):
            data = payload.get("data", payload)
        else:
            data = payload
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return data["data"]
        return []

    async def aclose(self) -> None:
        await self._client.aclose()
