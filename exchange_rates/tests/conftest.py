"""Shared fixtures: a canned HTTP API served through httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from exchange_rates.src.SourceFetcher import SourceFetcher


class FakeApi:
    """Serves canned responses per URL and records every request.

    Unknown URLs fail with a connection error, like an unreachable host.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, str]] = {}
        self.requests: list[str] = []

    def add(self, url: str, body: Any, status_code: int = 200) -> None:
        text = body if isinstance(body, str) else json.dumps(body)
        self.routes[url] = (status_code, text)

    def timeout(self, url: str) -> None:
        self.routes[url] = (-1, "")

    def count(self, url: str) -> int:
        return self.requests.count(url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url not in self.routes:
            raise httpx.ConnectError("Connection refused", request=request)
        status_code, text = self.routes[url]
        if status_code == -1:
            raise httpx.ReadTimeout("Read timed out", request=request)
        return httpx.Response(status_code, text=text)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def fetcher(fake_api: FakeApi) -> SourceFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
    return SourceFetcher(timeout=1.0, client=client)
