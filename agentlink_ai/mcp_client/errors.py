from __future__ import annotations


class McpClientError(Exception):
    pass


class TransportConstructionError(McpClientError):
    def __init__(self, server_id: str, message: str) -> None:
        super().__init__(f"Cannot build MCP transport for '{server_id}': {message}")
        self.server_id = server_id


class ProbeFailureError(McpClientError):
    def __init__(self, server_id: str, message: str) -> None:
        super().__init__(f"MCP server '{server_id}' is unreachable: {message}")
        self.server_id = server_id
        self.reason = message


class ConnectionClosedError(McpClientError):
    def __init__(self, server_id: str) -> None:
        super().__init__(f"Connection to MCP server '{server_id}' was released by the manager")
        self.server_id = server_id
