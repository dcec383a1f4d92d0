from .base import BaseSchema
from .config import ToolServerConfig, TransportKind
from .core import ServerStatus, ToolInfo

__all__ = [
    "BaseSchema",
    "ServerStatus",
    "ToolInfo",
    "ToolServerConfig",
    "TransportKind",
]
