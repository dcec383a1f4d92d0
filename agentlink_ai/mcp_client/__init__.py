from .connection import ToolConnection
from .errors import (
    ConnectionClosedError,
    McpClientError,
    ProbeFailureError,
    TransportConstructionError,
)
from .lifetime import Lifetime
from .manager import CONFIG_MISSING, ToolConnectionManager
from .schemas.config import ToolServerConfig, TransportKind
from .schemas.core import ServerStatus, ToolInfo

__all__ = [
    "CONFIG_MISSING",
    "ConnectionClosedError",
    "Lifetime",
    "McpClientError",
    "ProbeFailureError",
    "ServerStatus",
    "ToolConnection",
    "ToolConnectionManager",
    "ToolInfo",
    "ToolServerConfig",
    "TransportConstructionError",
    "TransportKind",
]
