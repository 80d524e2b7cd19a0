"""Test helpers: simulated Docmost backend, client and settings builders.

The Docmost backend is simulated with httpx.MockTransport: each test supplies
a handler that receives the outbound httpx.Request and returns a response.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from docmost_gateway.backend.client import DocmostClient
from docmost_gateway.config.settings import (
    DocmostSettings,
    GatewaySettings,
    LoggingSettings,
    Settings,
)

BASE_URL = "https://docs.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingBackend:
    """MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected backend call: {request.url.path}")
        return self._responses.pop(0)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def make_client(handler: Handler, *, api_token: str | None = "static-token", **kwargs: Any) -> DocmostClient:
    return DocmostClient(
        BASE_URL,
        api_token=api_token,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def make_settings(
    *,
    api_token: str = "static-token",
    email: str = "",
    password: str = "",
    read_only: bool = False,
) -> Settings:
    return Settings(
        docmost=DocmostSettings(
            base_url=BASE_URL, api_token=api_token, email=email, password=password,
        ),
        gateway=GatewaySettings(read_only=read_only),
        logging=LoggingSettings(),
    )


