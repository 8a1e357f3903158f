"""Shared context types for MCP server.

Kept apart from server and tools to avoid circular imports.
"""

from dataclasses import dataclass
from pathlib import Path

from mcp.server.fastmcp import Context
from mcp.server.session import ServerSession

from .engine import EditConfig, EditSession


@dataclass
class AppContext:
    """Application context containing shared resources for MCP tools.

    Created during server startup; the EditSession lives for the whole
    server run and is closed on shutdown.
    """

    config: EditConfig
    session: EditSession
    working_dir: Path


# Type alias for MCP tool context parameter
AppContextType = Context[ServerSession, AppContext]


__all__ = ["AppContext", "AppContextType"]
