"""MCP transport strategies.

One strategy per `TransportKind`, registered in `TRANSPORT_STRATEGIES`. Each
strategy knows how to:

- ``create_toolset(config)``: build the Pydantic AI MCP toolset handed to the
  agent runtime. Building does not connect; the runtime opens sessions on use.
- ``session(config)``: open a short-lived, initialized ``mcp.ClientSession``
  used for connection tests and tool discovery.

HTTP based strategies create their ``httpx`` clients on top of the injected
`TransportProvider`, so MCP traffic follows the same proxy policy as model
traffic.

Typical usage:
    strategies = build_transport_strategies(ProxyTransportProvider())
    strategy = strategies[config.transport_type]
    async with strategy.session(config) as session:
        tools = await session.list_tools()
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    Optional,
    Protocol,
    Type,
    runtime_checkable,
)

import httpx
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation
from pydantic_ai.mcp import MCPServer, MCPServerSSE, MCPServerStdio, MCPServerStreamableHTTP

from agentlink_ai.core.transport import TransportProvider

from .errors import TransportConstructionError
from .schemas.config import ToolServerConfig, TransportKind

logger = logging.getLogger(__name__)

CLIENT_VERSION = "1.0.0"
DEFAULT_HTTP_TIMEOUT = 30.0
CONNECT_RETRY_BACKOFF = 0.5

HttpClientFactory = Callable[..., httpx.AsyncClient]


class _ConnectRetryTransport(httpx.AsyncBaseTransport):
    """Retries requests that failed to establish a connection, with exponential backoff.

    Only connect failures are retried; nothing has reached the server at that
    point, so resending is safe.
    """

    def __init__(self, base: httpx.AsyncBaseTransport, retries: int) -> None:
        self._base = base
        self._retries = max(retries, 0)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            try:
                return await self._base.handle_async_request(request)
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                if attempt >= self._retries:
                    raise
                delay = CONNECT_RETRY_BACKOFF * (2**attempt)
                attempt += 1
                logger.debug(
                    "MCP connect to %s failed (%s); retry %d/%d in %.1fs", request.url, e, attempt, self._retries, delay
                )
                await asyncio.sleep(delay)

    async def aclose(self) -> None:
        await self._base.aclose()


@runtime_checkable
class McpTransportStrategy(Protocol):
    """Protocol for per-transport construction strategies."""

    kind: TransportKind

    def create_toolset(self, config: ToolServerConfig) -> MCPServer: ...

    def session(self, config: ToolServerConfig) -> AsyncContextManager[ClientSession]: ...


@asynccontextmanager
async def _initialized_session(read_stream: Any, write_stream: Any, client_name: str) -> AsyncIterator[ClientSession]:
    async with ClientSession(
        read_stream,
        write_stream,
        client_info=Implementation(name=client_name, version=CLIENT_VERSION),
    ) as session:
        await session.initialize()
        yield session


class _ProxiedStreamableHTTPToolset(MCPServerStreamableHTTP):
    """Streamable HTTP toolset whose sessions get a fresh proxied ``httpx`` client each time.

    A single ``http_client`` cannot be reused because the MCP SDK closes the
    client when a session ends, and the agent runtime opens one session per run.
    """

    def __init__(self, url: str, *, client_factory: HttpClientFactory, **kwargs: Any) -> None:
        super().__init__(url, **kwargs)
        self._client_factory = client_factory

    @asynccontextmanager
    async def client_streams(self):  # type: ignore[override]
        async with streamablehttp_client(self.url, httpx_client_factory=self._client_factory) as (
            read_stream,
            write_stream,
            _get_session_id,
        ):
            yield read_stream, write_stream


class _ProxiedSSEToolset(MCPServerSSE):
    """SSE toolset variant of `_ProxiedStreamableHTTPToolset`."""

    def __init__(self, url: str, *, client_factory: HttpClientFactory, **kwargs: Any) -> None:
        super().__init__(url, **kwargs)
        self._client_factory = client_factory

    @asynccontextmanager
    async def client_streams(self):  # type: ignore[override]
        async with sse_client(self.url, httpx_client_factory=self._client_factory) as (read_stream, write_stream):
            yield read_stream, write_stream


class _HttpStrategyBase:
    """Shared helpers for strategies that reach the server over HTTP."""

    kind: TransportKind

    def __init__(
        self,
        transport_provider: TransportProvider,
        *,
        client_name: str = "agentlink-ai",
        connect_retries: int = 0,
    ) -> None:
        self._transport_provider = transport_provider
        self._client_name = client_name
        self._connect_retries = connect_retries

    def _client_factory(self) -> HttpClientFactory:
        """Return an MCP ``httpx_client_factory`` that routes through the injected transport.

        Connection failures are retried up to ``connect_retries`` times.
        """

        def factory(
            headers: Optional[Dict[str, str]] = None,
            timeout: Optional[httpx.Timeout] = None,
            auth: Optional[httpx.Auth] = None,
        ) -> httpx.AsyncClient:
            return httpx.AsyncClient(
                transport=_ConnectRetryTransport(self._transport_provider.get_transport(), self._connect_retries),
                headers=headers,
                timeout=timeout if timeout is not None else httpx.Timeout(DEFAULT_HTTP_TIMEOUT),
                auth=auth,
                follow_redirects=True,
            )

        return factory

    @staticmethod
    def _require_endpoint(config: ToolServerConfig) -> str:
        endpoint = (config.endpoint or "").strip()
        if not endpoint:
            raise TransportConstructionError(config.id, f"{config.transport_type.value} transport requires an endpoint")
        return endpoint


class StreamableHttpStrategy(_HttpStrategyBase):
    kind = TransportKind.STREAMABLE_HTTP

    def create_toolset(self, config: ToolServerConfig) -> MCPServer:
        endpoint = self._require_endpoint(config)
        logger.info("Creating streamable HTTP transport [%s]: %s", config.name, endpoint)
        return _ProxiedStreamableHTTPToolset(
            endpoint,
            client_factory=self._client_factory(),
        )

    def session(self, config: ToolServerConfig) -> AsyncContextManager[ClientSession]:
        endpoint = self._require_endpoint(config)

        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with streamablehttp_client(endpoint, httpx_client_factory=self._client_factory()) as (
                read_stream,
                write_stream,
                _get_session_id,
            ):
                async with _initialized_session(read_stream, write_stream, self._client_name) as session:
                    yield session

        return _cm()


class SseStrategy(_HttpStrategyBase):
    kind = TransportKind.SSE

    def create_toolset(self, config: ToolServerConfig) -> MCPServer:
        endpoint = self._require_endpoint(config)
        logger.warning("Creating SSE transport [%s]: %s (deprecated, prefer streamable HTTP)", config.name, endpoint)
        return _ProxiedSSEToolset(endpoint, client_factory=self._client_factory())

    def session(self, config: ToolServerConfig) -> AsyncContextManager[ClientSession]:
        endpoint = self._require_endpoint(config)

        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with sse_client(endpoint, httpx_client_factory=self._client_factory()) as (read_stream, write_stream):
                async with _initialized_session(read_stream, write_stream, self._client_name) as session:
                    yield session

        return _cm()


class CommandStrategy:
    """Spawns the server as a subprocess speaking MCP over stdio."""

    kind = TransportKind.COMMAND

    def __init__(
        self,
        transport_provider: Optional[TransportProvider] = None,  # noqa: ARG002
        *,
        client_name: str = "agentlink-ai",
        connect_retries: int = 0,  # noqa: ARG002
    ) -> None:
        self._client_name = client_name

    @staticmethod
    def _require_command(config: ToolServerConfig) -> str:
        command = (config.command or "").strip()
        if not command:
            raise TransportConstructionError(config.id, "command transport requires a command")
        return command

    def create_toolset(self, config: ToolServerConfig) -> MCPServer:
        command = self._require_command(config)
        logger.info("Creating command transport [%s]: %s %s", config.name, command, config.args)
        return MCPServerStdio(command, args=list(config.args), env=config.env)

    def session(self, config: ToolServerConfig) -> AsyncContextManager[ClientSession]:
        params = StdioServerParameters(command=self._require_command(config), args=list(config.args), env=config.env)

        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with stdio_client(params) as (read_stream, write_stream):
                async with _initialized_session(read_stream, write_stream, self._client_name) as session:
                    yield session

        return _cm()


TRANSPORT_STRATEGIES: Dict[TransportKind, Type[Any]] = {
    TransportKind.STREAMABLE_HTTP: StreamableHttpStrategy,
    TransportKind.COMMAND: CommandStrategy,
    TransportKind.SSE: SseStrategy,
}


def build_transport_strategies(
    transport_provider: TransportProvider,
    *,
    client_name: str = "agentlink-ai",
    connect_retries: int = 0,
) -> Dict[TransportKind, McpTransportStrategy]:
    """Instantiate every registered strategy against one transport provider."""
    return {
        kind: strategy_cls(transport_provider, client_name=client_name, connect_retries=connect_retries)
        for kind, strategy_cls in TRANSPORT_STRATEGIES.items()
    }
