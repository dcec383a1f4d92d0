from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import BaseSchema


class TransportKind(str, Enum):
    STREAMABLE_HTTP = "streamable-http"
    COMMAND = "command"
    SSE = "sse"  # deprecated transport, kept for older MCP servers


class ToolServerConfig(BaseSchema):
    """One configured MCP tool server.

    Configs are supplied wholesale by the configuration store and never patched
    in place, so the model is frozen.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        description="Stable identifier used to look up the server and its cached connection.",
        min_length=1,
        max_length=128,
        examples=["fs", "9b2f6c1e-clickup"],
    )
    name: str = Field(
        ...,
        description="Human-readable name used in logs and tool catalogs.",
        min_length=1,
        max_length=128,
        examples=["Filesystem", "ClickUp MCP"],
    )
    transport_type: TransportKind = Field(
        TransportKind.STREAMABLE_HTTP,
        description=(
            "How the server is reached. STREAMABLE_HTTP is preferred; SSE is deprecated and COMMAND "
            "spawns a local subprocess speaking MCP over stdio."
        ),
        examples=[TransportKind.STREAMABLE_HTTP, TransportKind.COMMAND],
    )
    endpoint: Optional[str] = Field(
        None,
        description="Endpoint URL for STREAMABLE_HTTP and SSE servers.",
        max_length=512,
        examples=["http://localhost:8000/mcp", "http://localhost:8082/sse"],
    )
    command: Optional[str] = Field(
        None,
        description="Executable for COMMAND servers.",
        max_length=512,
        examples=["npx", "uvx"],
    )
    args: List[str] = Field(
        default_factory=list,
        description="Arguments passed to `command`.",
        examples=[["-y", "@modelcontextprotocol/server-filesystem", "/tmp"]],
    )
    env: Optional[Dict[str, str]] = Field(
        None,
        description="Environment for COMMAND servers. None inherits the MCP SDK's default safe environment.",
    )
    enabled: bool = Field(True, description="Disabled servers are filtered out when configs are loaded.")
