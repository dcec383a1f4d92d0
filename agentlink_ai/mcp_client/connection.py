"""Live connection handles for configured MCP tool servers.

A `ToolConnection` binds one `ToolServerConfig` to the Pydantic AI toolset
built for it. The agent runtime borrows the handle (or its ``toolset``) and
opens sessions as needed; the manager owns the handle and releases it when
configuration changes or its lifetime ends.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic_ai.mcp import MCPServer

from .errors import ConnectionClosedError
from .schemas.config import ToolServerConfig, TransportKind
from .schemas.core import ToolInfo

logger = logging.getLogger(__name__)


def to_tool_infos(tools: Iterable[Any], config: ToolServerConfig) -> List[ToolInfo]:
    """Convert MCP tool descriptors into `ToolInfo` records for one server.

    Entries without a usable name are skipped.
    """
    infos: List[ToolInfo] = []
    for tool in tools:
        name = getattr(tool, "name", None)
        if not isinstance(name, str) or not name:
            continue
        desc_val = getattr(tool, "description", None)
        infos.append(
            ToolInfo(
                name=name,
                description=desc_val if isinstance(desc_val, str) else "",
                server_id=config.id,
                server_name=config.name,
            )
        )
    return infos


class ToolConnection:
    """Handle for one configured MCP server.

    Use it as an async context manager to hold a session open across several
    calls, or call `list_tools` / `call_tool` directly for one-off use. The
    underlying Pydantic AI toolset reference-counts sessions, so nested use is
    cheap.

    After `aclose` the handle refuses new sessions and no longer hands out its
    ``toolset``; both raise `ConnectionClosedError`. Sessions that are already
    open finish normally.
    """

    def __init__(self, config: ToolServerConfig, toolset: MCPServer) -> None:
        self._config = config
        self._toolset = toolset
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"ToolConnection(id={self.server_id!r}, transport={self.transport_type.value}, {state})"

    @property
    def config(self) -> ToolServerConfig:
        return self._config

    @property
    def server_id(self) -> str:
        return self._config.id

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def transport_type(self) -> TransportKind:
        return self._config.transport_type

    @property
    def toolset(self) -> MCPServer:
        """The Pydantic AI toolset, e.g. for ``Agent(model, toolsets=[conn.toolset])``.

        Raises:
            ConnectionClosedError: If the handle has been released.
        """
        if self._closed:
            raise ConnectionClosedError(self.server_id)
        return self._toolset

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "ToolConnection":
        if self._closed:
            raise ConnectionClosedError(self.server_id)
        await self._toolset.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        return await self._toolset.__aexit__(exc_type, exc, tb)

    async def list_tools(self) -> List[ToolInfo]:
        async with self:
            tools = await self._toolset.list_tools()
        return to_tool_infos(tools, self._config)

    async def call_tool(self, tool_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        async with self:
            logger.debug(
                "ToolConnection.call_tool: server_id=%s tool=%s args_keys=%s",
                self.server_id,
                tool_name,
                list((args or {}).keys()),
            )
            return await self._toolset.direct_call_tool(tool_name, args or {})

    async def aclose(self) -> None:
        """Release the handle. Idempotent."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Released MCP connection: %s", self.server_id)
