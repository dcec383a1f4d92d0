from __future__ import annotations

import pytest
from pydantic import ValidationError

from agentlink_ai.mcp_client.schemas import ServerStatus, ToolInfo, ToolServerConfig, TransportKind


class TestToolServerConfig:
    def test_defaults(self) -> None:
        cfg = ToolServerConfig(id="fs", name="Filesystem", endpoint="http://mock/mcp")

        assert cfg.transport_type is TransportKind.STREAMABLE_HTTP
        assert cfg.enabled is True
        assert cfg.args == []
        assert cfg.env is None

    def test_accepts_camel_case_payload(self) -> None:
        cfg = ToolServerConfig.model_validate(
            {
                "id": "fs",
                "name": "Filesystem",
                "transportType": "command",
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
                "enabled": False,
            }
        )

        assert cfg.transport_type is TransportKind.COMMAND
        assert cfg.command == "npx"
        assert cfg.enabled is False

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            ToolServerConfig(id="fs", name="Filesystem", unexpected=True)

    def test_rejects_unknown_transport(self) -> None:
        with pytest.raises(ValidationError):
            ToolServerConfig(id="fs", name="Filesystem", transport_type="websocket")

    def test_is_frozen(self) -> None:
        cfg = ToolServerConfig(id="fs", name="Filesystem")

        with pytest.raises(ValidationError):
            cfg.enabled = False  # type: ignore[misc]


class TestRecords:
    def test_server_status_defaults_make_no_liveness_claim(self) -> None:
        status = ServerStatus(id="fs")

        assert status.model_dump(by_alias=True) == {"id": "fs", "connected": False, "error": ""}

    def test_tool_info_serializes_camel_case(self) -> None:
        info = ToolInfo(name="read_file", server_id="fs", server_name="Filesystem")

        assert info.model_dump(by_alias=True) == {
            "name": "read_file",
            "description": "",
            "serverId": "fs",
            "serverName": "Filesystem",
        }
