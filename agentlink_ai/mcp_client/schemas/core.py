from __future__ import annotations

from pydantic import Field

from .base import BaseSchema


class ServerStatus(BaseSchema):
    id: str = Field(..., description="Identifier of the configured MCP server.")
    connected: bool = Field(
        False,
        description="True only after an explicit connection test succeeded; listing status makes no liveness claim.",
    )
    error: str = Field("", description="Failure reason of the last connection test, empty when none.")


class ToolInfo(BaseSchema):
    name: str = Field(..., description="Tool name as announced by the server.")
    description: str = Field("", description="Short description of what the tool does.")
    server_id: str = Field(..., description="Identifier of the server offering the tool.")
    server_name: str = Field(..., description="Human-readable name of the server offering the tool.")
