from __future__ import annotations

from typing import Iterable

import httpx
import pytest


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(client, url_str: str) -> bool:
        # requests answered in-process never leave the machine
        if isinstance(getattr(client, "_transport", None), httpx.MockTransport):
            return True
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(self, url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(self, url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)


class MockTransportProvider:
    """`TransportProvider` handing out in-process `httpx.MockTransport`s."""

    def __init__(self, handler) -> None:
        self.handler = handler
        self.async_calls = 0
        self.sync_calls = 0

    def get_transport(self) -> httpx.AsyncBaseTransport:
        self.async_calls += 1
        return httpx.MockTransport(self.handler)

    def get_sync_transport(self) -> httpx.BaseTransport:
        self.sync_calls += 1
        return httpx.MockTransport(self.handler)


@pytest.fixture
def recorded_requests() -> list:
    return []


@pytest.fixture
def mock_transport_provider(recorded_requests: list) -> MockTransportProvider:
    """Provider whose transports record every request and answer 200 ``{}``."""

    def handler(request: httpx.Request) -> httpx.Response:
        recorded_requests.append(request)
        return httpx.Response(200, json={})

    return MockTransportProvider(handler)


@pytest.fixture
def make_transport_provider():
    """Factory fixture: ``make_transport_provider(handler)`` -> `MockTransportProvider`."""
    return MockTransportProvider
