"""MCP tool connection manager.

Owns the set of enabled `ToolServerConfig`s and a cache holding at most one
`ToolConnection` per server id.

- `load_configs` replaces the enabled set wholesale and releases the whole
  cache, even for ids that come back unchanged.
- Connections are built eagerly once a `Lifetime` is bound (`initialize`), and
  lazily on first retrieval otherwise.
- Connection tests and tool catalogs always use fresh, short-lived sessions
  bounded by a deadline; they never touch the cache.

Concurrency: a single `ReadWriteLock` guards configs, cache and lifetime.
Status queries take the read side. Every path that may mutate the cache,
including lazy builds, holds the write side for the whole operation, so
connection construction happens under the lock.

Typical usage:
    manager = ToolConnectionManager(ProxyTransportProvider())
    await manager.load_configs(configs)
    await manager.initialize(lifetime)

    toolsets = [c.toolset for c in await manager.get_connections_by_ids(["fs"])]
    status = await manager.test_connection("fs")
    tools = await manager.get_tool_catalogs(["fs", "github"])
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from agentlink_ai.core.config import settings
from agentlink_ai.core.locks import ReadWriteLock
from agentlink_ai.core.transport import ProxyTransportProvider, TransportProvider

from .connection import ToolConnection, to_tool_infos
from .errors import McpClientError, ProbeFailureError, TransportConstructionError
from .lifetime import Lifetime
from .schemas.config import ToolServerConfig, TransportKind
from .schemas.core import ServerStatus, ToolInfo
from .transport import McpTransportStrategy, build_transport_strategies

logger = logging.getLogger(__name__)

CONFIG_MISSING = "configuration missing"


class ToolConnectionManager:
    """Cache of live MCP connections keyed by server id."""

    def __init__(
        self,
        transport_provider: Optional[TransportProvider] = None,
        *,
        strategies: Optional[Mapping[TransportKind, McpTransportStrategy]] = None,
        connection_test_timeout: Optional[float] = None,
        tool_catalog_timeout: Optional[float] = None,
    ) -> None:
        """Create an empty manager.

        Args:
            transport_provider: Source of proxy-aware HTTP transports. Defaults to
                `ProxyTransportProvider.from_settings()`.
            strategies: Override the per-transport strategies (mainly for tests).
            connection_test_timeout: Deadline for `test_connection` in seconds.
            tool_catalog_timeout: Deadline for `get_tool_catalog` in seconds.
        """
        mcp_settings = settings.mcp
        if strategies is None:
            strategies = build_transport_strategies(
                transport_provider or ProxyTransportProvider.from_settings(),
                client_name=mcp_settings.client_name,
                connect_retries=mcp_settings.streamable_http_max_retries,
            )
        self._strategies: Dict[TransportKind, McpTransportStrategy] = dict(strategies)
        self._test_timeout = (
            mcp_settings.connection_test_timeout if connection_test_timeout is None else connection_test_timeout
        )
        self._catalog_timeout = mcp_settings.tool_catalog_timeout if tool_catalog_timeout is None else tool_catalog_timeout

        self._lock = ReadWriteLock()
        self._configs: Dict[str, ToolServerConfig] = {}
        self._connections: Dict[str, ToolConnection] = {}
        self._lifetime: Optional[Lifetime] = None

    @property
    def lifetime(self) -> Optional[Lifetime]:
        return self._lifetime

    @property
    def cached_ids(self) -> List[str]:
        """Ids with a cached connection (snapshot, for diagnostics)."""
        return list(self._connections)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, lifetime: Lifetime) -> None:
        """Bind the lifetime once and warm up a connection for every enabled config.

        Never raises: build failures are logged and the id is skipped.
        """
        async with self._lock.write():
            if self._lifetime is None:
                self._lifetime = lifetime
                if lifetime.cancelled:
                    logger.warning("Lifetime '%s' is already closed; skipping MCP warm-up", lifetime.name)
                    return
                lifetime.on_cancel(self.close)
                logger.info("MCP manager bound to lifetime '%s'", lifetime.name)
            elif self._lifetime is not lifetime:
                logger.warning(
                    "MCP manager is already bound to lifetime '%s'; ignoring '%s'",
                    self._lifetime.name,
                    lifetime.name,
                )
            self._warm_up_locked()

    async def load_configs(self, configs: Iterable[ToolServerConfig]) -> None:
        """Replace the enabled config set and release every cached connection."""
        async with self._lock.write():
            dropped = list(self._connections.values())
            self._connections = {}

            enabled: Dict[str, ToolServerConfig] = {}
            for cfg in configs:
                if not cfg.enabled:
                    logger.debug("Skipping disabled MCP config: %s", cfg.name)
                    continue
                if cfg.id in enabled:
                    logger.warning("Duplicate MCP config id '%s'; the later entry wins", cfg.id)
                enabled[cfg.id] = cfg
                logger.info("Loaded MCP config: %s (%s)", cfg.name, cfg.transport_type.value)
            self._configs = enabled

            for conn in dropped:
                await conn.aclose()

            self._warm_up_locked()

    async def close(self) -> None:
        """Release every cached connection. Configs stay loaded."""
        async with self._lock.write():
            dropped = list(self._connections.values())
            self._connections = {}
            for conn in dropped:
                await conn.aclose()
        if dropped:
            logger.info("Released %d MCP connections", len(dropped))

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------

    def _strategy_for(self, config: ToolServerConfig) -> McpTransportStrategy:
        strategy = self._strategies.get(config.transport_type)
        if strategy is None:
            raise TransportConstructionError(config.id, f"unsupported transport '{config.transport_type}'")
        return strategy

    def _build(self, config: ToolServerConfig) -> ToolConnection:
        try:
            toolset = self._strategy_for(config).create_toolset(config)
        except McpClientError:
            raise
        except Exception as e:
            logger.error("Failed to create MCP toolset [%s]: %s", config.name, e)
            raise TransportConstructionError(config.id, str(e)) from e
        logger.debug("MCP toolset created: %s", config.name)
        return ToolConnection(config, toolset)

    def _get_or_build_locked(self, server_id: str, config: ToolServerConfig) -> ToolConnection:
        conn = self._connections.get(server_id)
        if conn is not None:
            return conn
        conn = self._build(config)
        if self._lifetime is not None and self._lifetime.cancelled:
            # nothing would release it once the lifetime has ended
            logger.warning("MCP lifetime already ended; connection [%s] is not cached", config.name)
            return conn
        self._connections[server_id] = conn
        return conn

    def _warm_up_locked(self) -> None:
        if self._lifetime is None or self._lifetime.cancelled:
            return
        for server_id, cfg in self._configs.items():
            if server_id in self._connections:
                continue
            try:
                self._get_or_build_locked(server_id, cfg)
            except McpClientError as e:
                logger.warning("MCP warm-up failed [%s]: %s", cfg.name, e)
                continue
            logger.info("MCP warm-up succeeded: %s", cfg.name)

    async def create_connection(self, config: ToolServerConfig) -> ToolConnection:
        """Build a connection for `config` without touching the cache.

        Raises:
            TransportConstructionError: If the transport cannot be built.
        """
        return self._build(config)

    # ------------------------------------------------------------------
    # retrieval
    # ------------------------------------------------------------------

    async def get_connections_by_ids(self, ids: Iterable[str]) -> List[ToolConnection]:
        """Return cached or freshly built connections for `ids`, in input order.

        Unknown ids and ids whose connection cannot be built are left out.
        """
        ids = list(ids)
        async with self._lock.write():
            logger.info("Requesting MCP connections for ids: %s", ids)
            result: List[ToolConnection] = []
            for server_id in ids:
                cfg = self._configs.get(server_id)
                if cfg is None:
                    logger.warning("MCP config not found: %s", server_id)
                    continue
                try:
                    result.append(self._get_or_build_locked(server_id, cfg))
                except McpClientError as e:
                    logger.error("Failed to create MCP connection [%s]: %s", server_id, e)
            logger.info("Returning %d MCP connections", len(result))
            return result

    async def get_all_connections(self) -> List[ToolConnection]:
        """Return a connection for every enabled config. Order is unspecified."""
        async with self._lock.write():
            result: List[ToolConnection] = []
            for server_id, cfg in self._configs.items():
                try:
                    result.append(self._get_or_build_locked(server_id, cfg))
                except McpClientError as e:
                    logger.error("Failed to create MCP connection [%s]: %s", server_id, e)
            return result

    async def get_all_status(self) -> List[ServerStatus]:
        """One status record per enabled config.

        This reports configured identity only; use `test_connection` to learn
        whether a server is reachable.
        """
        async with self._lock.read():
            return [ServerStatus(id=server_id) for server_id in self._configs]

    # ------------------------------------------------------------------
    # probes
    # ------------------------------------------------------------------

    async def _lookup(self, server_id: str) -> Optional[ToolServerConfig]:
        async with self._lock.read():
            return self._configs.get(server_id)

    async def test_connection(self, server_id: str) -> ServerStatus:
        """Open and discard a fresh session to check that the server is reachable.

        Never raises for an unreachable or unknown server; the reason is
        reported in `ServerStatus.error`.
        """
        logger.info("Testing MCP connection: %s", server_id)
        cfg = await self._lookup(server_id)
        if cfg is None:
            return ServerStatus(id=server_id, connected=False, error=CONFIG_MISSING)

        try:
            async with asyncio.timeout(self._test_timeout):
                async with self._strategy_for(cfg).session(cfg):
                    pass
        except TimeoutError:
            error = f"timed out after {self._test_timeout:g}s"
            logger.error("MCP connection test failed [%s]: %s", cfg.name, error)
            return ServerStatus(id=server_id, connected=False, error=error)
        except Exception as e:
            logger.error("MCP connection test failed [%s]: %s", cfg.name, e)
            return ServerStatus(id=server_id, connected=False, error=str(e) or type(e).__name__)

        logger.info("MCP connection test succeeded: %s", cfg.name)
        return ServerStatus(id=server_id, connected=True)

    async def get_tool_catalog(self, server_id: str) -> List[ToolInfo]:
        """List the tools of one server over a fresh session.

        Returns:
            The server's tools, or an empty list when `server_id` is not configured.

        Raises:
            ProbeFailureError: If the server cannot be reached or listed in time.
            TransportConstructionError: If the config cannot be turned into a transport.
        """
        cfg = await self._lookup(server_id)
        if cfg is None:
            return []

        try:
            async with asyncio.timeout(self._catalog_timeout):
                async with self._strategy_for(cfg).session(cfg) as session:
                    tools = await _list_all_tools(session)
        except TimeoutError as e:
            raise ProbeFailureError(server_id, f"timed out after {self._catalog_timeout:g}s") from e
        except McpClientError:
            raise
        except Exception as e:
            raise ProbeFailureError(server_id, str(e) or type(e).__name__) from e
        return to_tool_infos(tools, cfg)

    async def get_tool_catalogs(self, ids: Iterable[str]) -> List[ToolInfo]:
        """Aggregate tool catalogs of several servers, in input order.

        Servers that fail are logged and left out; this call never raises.
        """
        ids = list(ids)
        logger.info("Fetching tool catalogs for servers: %s", ids)
        results = await asyncio.gather(*(self.get_tool_catalog(i) for i in ids), return_exceptions=True)

        all_tools: List[ToolInfo] = []
        for server_id, res in zip(ids, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                logger.error("Failed to fetch tool catalog [%s]: %s", server_id, res)
                continue
            all_tools.extend(res)
        logger.info("Fetched %d tools in total", len(all_tools))
        return all_tools


async def _list_all_tools(session: Any) -> List[Any]:
    """Collect every page of ``tools/list`` from an initialized session."""
    tools: List[Any] = []
    cursor: Optional[str] = None
    seen: set[str] = set()
    while True:
        resp = await session.list_tools(cursor=cursor) if cursor else await session.list_tools()
        tools.extend(getattr(resp, "tools", None) or [])
        cursor = getattr(resp, "nextCursor", None)
        if not cursor or cursor in seen:
            return tools
        seen.add(cursor)
