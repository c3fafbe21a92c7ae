"""
wecom-robot: WeCom group robot webhook client and MCP stdio server.

Exposes send_message, send_file and send_image as MCP tools.
"""

from wecom_robot.client import WeComClient
from wecom_robot.config import Settings
from wecom_robot.errors import (
    ErrorKind,
    WeComError,
    InvalidInputError,
    NotFoundError,
    RemoteError,
    ProtocolError,
)
from wecom_robot.server import McpServer
from wecom_robot.tools import TOOLS, ToolDispatcher

__version__ = "0.1.0"
__all__ = [
    "WeComClient",
    "Settings",
    "ErrorKind",
    "WeComError",
    "InvalidInputError",
    "NotFoundError",
    "RemoteError",
    "ProtocolError",
    "McpServer",
    "TOOLS",
    "ToolDispatcher",
]
