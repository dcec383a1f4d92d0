from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from pydantic_ai.mcp import MCPServerSSE, MCPServerStdio, MCPServerStreamableHTTP

from agentlink_ai.mcp_client import transport as t_mod
from agentlink_ai.mcp_client.errors import TransportConstructionError
from agentlink_ai.mcp_client.schemas import ToolServerConfig, TransportKind


class _FakeClientSession:
    def __init__(self, read_stream: Any, write_stream: Any, client_info: Any = None) -> None:
        self.read_stream = read_stream
        self.write_stream = write_stream
        self.client_info = client_info
        self.initialized = False
        self.entered = False
        self.exited = False
        self.exit_exc: Optional[Tuple[Any, Any, Any]] = None

    async def __aenter__(self) -> "_FakeClientSession":
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.exited = True
        self.exit_exc = (exc_type, exc, tb)
        return None

    async def initialize(self) -> None:
        self.initialized = True


def _fake_streamablehttp_client(state: Dict[str, Any]):
    @asynccontextmanager
    async def _fake_ctx(endpoint_url: str, httpx_client_factory=None):
        state["endpoint"] = endpoint_url
        state["factory"] = httpx_client_factory
        state["stream_entered"] = True
        try:
            yield (object(), object(), lambda: None)
        finally:
            state["stream_exited"] = True

    return _fake_ctx


def _fake_sse_client(state: Dict[str, Any]):
    @asynccontextmanager
    async def _fake_ctx(endpoint_url: str, httpx_client_factory=None):
        state["endpoint"] = endpoint_url
        state["factory"] = httpx_client_factory
        state["sse_entered"] = True
        try:
            yield (object(), object())
        finally:
            state["sse_exited"] = True

    return _fake_ctx


def _fake_stdio_client(state: Dict[str, Any]):
    @asynccontextmanager
    async def _fake_ctx(params):
        state["params"] = params
        yield (object(), object())

    return _fake_ctx


def _http_cfg(kind: TransportKind = TransportKind.STREAMABLE_HTTP, endpoint: Optional[str] = "http://mock/mcp"):
    return ToolServerConfig(id="remote", name="Remote", transport_type=kind, endpoint=endpoint)


def _command_cfg(command: Optional[str] = "npx"):
    return ToolServerConfig(
        id="fs",
        name="Filesystem",
        transport_type=TransportKind.COMMAND,
        command=command,
        args=["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
        env={"HOME": "/tmp"},
    )


class TestStrategyRegistry:
    def test_every_transport_kind_has_a_strategy(self, mock_transport_provider) -> None:
        strategies = t_mod.build_transport_strategies(mock_transport_provider)

        assert set(strategies) == set(TransportKind)
        for kind, strategy in strategies.items():
            assert strategy.kind is kind
            assert isinstance(strategy, t_mod.McpTransportStrategy)


class TestStreamableHttpStrategy:
    def test_create_toolset_targets_endpoint(self, mock_transport_provider) -> None:
        strategy = t_mod.StreamableHttpStrategy(mock_transport_provider, connect_retries=3)

        toolset = strategy.create_toolset(_http_cfg())

        assert isinstance(toolset, MCPServerStreamableHTTP)
        assert toolset.url == "http://mock/mcp"

    def test_missing_endpoint_raises(self, mock_transport_provider) -> None:
        strategy = t_mod.StreamableHttpStrategy(mock_transport_provider)

        with pytest.raises(TransportConstructionError) as exc_info:
            strategy.create_toolset(_http_cfg(endpoint="  "))
        assert exc_info.value.server_id == "remote"

    @pytest.mark.asyncio
    async def test_session_initializes_and_yields(self, monkeypatch: pytest.MonkeyPatch, mock_transport_provider) -> None:
        state: Dict[str, Any] = {}
        monkeypatch.setattr(t_mod, "streamablehttp_client", _fake_streamablehttp_client(state), raising=True)
        monkeypatch.setattr(t_mod, "ClientSession", _FakeClientSession, raising=True)

        strategy = t_mod.StreamableHttpStrategy(mock_transport_provider, client_name="tester")

        async with strategy.session(_http_cfg()) as session:
            assert isinstance(session, _FakeClientSession)
            assert session.initialized is True
            assert session.client_info.name == "tester"
            assert state["endpoint"] == "http://mock/mcp"

        assert state["stream_exited"] is True
        assert session.exited is True

    @pytest.mark.asyncio
    async def test_session_http_client_uses_injected_transport(
        self, monkeypatch: pytest.MonkeyPatch, mock_transport_provider, recorded_requests
    ) -> None:
        state: Dict[str, Any] = {}
        monkeypatch.setattr(t_mod, "streamablehttp_client", _fake_streamablehttp_client(state), raising=True)
        monkeypatch.setattr(t_mod, "ClientSession", _FakeClientSession, raising=True)

        strategy = t_mod.StreamableHttpStrategy(mock_transport_provider)
        async with strategy.session(_http_cfg()):
            pass

        async with state["factory"](headers={"X-Test": "1"}) as client:
            assert isinstance(client, httpx.AsyncClient)
            await client.get("http://mock/mcp")

        assert mock_transport_provider.async_calls >= 1
        assert str(recorded_requests[0].url) == "http://mock/mcp"
        assert recorded_requests[0].headers["X-Test"] == "1"

    @pytest.mark.asyncio
    async def test_session_propagates_initialize_exception(
        self, monkeypatch: pytest.MonkeyPatch, mock_transport_provider
    ) -> None:
        state: Dict[str, Any] = {}

        class _FailingClientSession(_FakeClientSession):
            async def initialize(self) -> None:
                raise RuntimeError("init-failed")

        monkeypatch.setattr(t_mod, "streamablehttp_client", _fake_streamablehttp_client(state), raising=True)
        monkeypatch.setattr(t_mod, "ClientSession", _FailingClientSession, raising=True)

        strategy = t_mod.StreamableHttpStrategy(mock_transport_provider)

        with pytest.raises(RuntimeError, match="init-failed"):
            async with strategy.session(_http_cfg()):
                pass
        assert state["stream_exited"] is True


class TestSseStrategy:
    def test_create_toolset_logs_deprecation(self, mock_transport_provider, caplog: pytest.LogCaptureFixture) -> None:
        strategy = t_mod.SseStrategy(mock_transport_provider)

        with caplog.at_level("WARNING", logger="agentlink_ai.mcp_client.transport"):
            toolset = strategy.create_toolset(_http_cfg(TransportKind.SSE, "http://mock/sse"))
            strategy.create_toolset(_http_cfg(TransportKind.SSE, "http://mock/sse"))

        assert isinstance(toolset, MCPServerSSE)
        assert sum("deprecated" in r.getMessage() for r in caplog.records) == 2

    @pytest.mark.asyncio
    async def test_session_initializes_and_yields(self, monkeypatch: pytest.MonkeyPatch, mock_transport_provider) -> None:
        state: Dict[str, Any] = {}
        monkeypatch.setattr(t_mod, "sse_client", _fake_sse_client(state), raising=True)
        monkeypatch.setattr(t_mod, "ClientSession", _FakeClientSession, raising=True)

        strategy = t_mod.SseStrategy(mock_transport_provider)

        async with strategy.session(_http_cfg(TransportKind.SSE, "http://mock/sse")) as session:
            assert session.initialized is True
            assert state["sse_entered"] is True

        assert state["sse_exited"] is True


class TestCommandStrategy:
    def test_create_toolset_spawns_command_lazily(self) -> None:
        strategy = t_mod.CommandStrategy()

        toolset = strategy.create_toolset(_command_cfg())

        assert isinstance(toolset, MCPServerStdio)
        assert toolset.command == "npx"
        assert list(toolset.args) == ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        assert toolset.env == {"HOME": "/tmp"}

    def test_missing_command_raises(self) -> None:
        with pytest.raises(TransportConstructionError):
            t_mod.CommandStrategy().create_toolset(_command_cfg(command=None))

    @pytest.mark.asyncio
    async def test_session_passes_stdio_parameters(self, monkeypatch: pytest.MonkeyPatch) -> None:
        state: Dict[str, Any] = {}
        monkeypatch.setattr(t_mod, "stdio_client", _fake_stdio_client(state), raising=True)
        monkeypatch.setattr(t_mod, "ClientSession", _FakeClientSession, raising=True)

        async with t_mod.CommandStrategy().session(_command_cfg()) as session:
            assert session.initialized is True

        params = state["params"]
        assert params.command == "npx"
        assert params.args == ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]
        assert params.env == {"HOME": "/tmp"}


def _flaky_provider(make_transport_provider, failures: int):
    attempts: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) <= failures:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={})

    return make_transport_provider(handler), attempts


class TestConnectRetries:
    @pytest.mark.asyncio
    async def test_connect_failures_are_retried_up_to_cap(
        self, monkeypatch: pytest.MonkeyPatch, make_transport_provider
    ) -> None:
        monkeypatch.setattr(t_mod, "CONNECT_RETRY_BACKOFF", 0.0)
        provider, attempts = _flaky_provider(make_transport_provider, failures=3)
        factory = t_mod.StreamableHttpStrategy(provider, connect_retries=3)._client_factory()

        async with factory() as client:
            response = await client.post("http://mock/mcp", json={"jsonrpc": "2.0"})

        assert response.status_code == 200
        assert len(attempts) == 4

    @pytest.mark.asyncio
    async def test_gives_up_after_cap(self, monkeypatch: pytest.MonkeyPatch, make_transport_provider) -> None:
        monkeypatch.setattr(t_mod, "CONNECT_RETRY_BACKOFF", 0.0)
        provider, attempts = _flaky_provider(make_transport_provider, failures=10)
        factory = t_mod.StreamableHttpStrategy(provider, connect_retries=2)._client_factory()

        async with factory() as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("http://mock/mcp")

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self, make_transport_provider) -> None:
        attempts: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(503, text="unavailable")

        factory = t_mod.StreamableHttpStrategy(make_transport_provider(handler), connect_retries=3)._client_factory()

        async with factory() as client:
            response = await client.get("http://mock/mcp")

        assert response.status_code == 503
        assert len(attempts) == 1

    def test_registry_passes_configured_cap(self, mock_transport_provider) -> None:
        strategies = t_mod.build_transport_strategies(mock_transport_provider, connect_retries=3)

        assert strategies[TransportKind.STREAMABLE_HTTP]._connect_retries == 3
