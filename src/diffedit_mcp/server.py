"""FastMCP server initialization for diffedit-mcp.

This module initializes the MCP server and manages shared resources via lifespan context.
All tool implementations are in the tools module.
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from .context import AppContext, AppContextType
from .engine import EditConfigLoader, EditSession, get_working_dir

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "DIFFEDIT_LOG_LEVEL"

# =============================================================================
# Shared Resources and Lifespan Management
# =============================================================================


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Create the edit session for the server run and close it on shutdown.

    Environment Variables:
        DIFFEDIT_CONFIG: Path to the YAML edit config
        DIFFEDIT_WORKING_DIR: Base directory for relative edit paths

    Args:
        _server: FastMCP server instance (unused, required by FastMCP signature)

    Yields:
        AppContext with the loaded config and edit session
    """
    logger.info("Initializing MCP server resources...")

    config = EditConfigLoader().load_config()
    working_dir = get_working_dir()
    logger.info(f"Working directory: {working_dir}")
    if config.dry_run:
        logger.info("Dry run enabled: edits will not be written")

    session = EditSession(config, working_dir=working_dir)
    app_context = AppContext(config=config, session=session, working_dir=working_dir)

    try:
        yield app_context
    finally:
        logger.info("Shutting down MCP server...")
        session.close()


# Following Python MCP naming convention: {service}_mcp
mcp = FastMCP("diffedit_mcp", lifespan=app_lifespan)


# =============================================================================
# Server Entry Point
# =============================================================================


def main() -> None:
    """Entry point for running the MCP server over stdio.

    Invoked via `python -m diffedit_mcp` or the `diffedit-mcp` script.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level_str = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").upper()

    if log_level_str not in valid_log_levels:
        print(
            f"Warning: Invalid {LOG_LEVEL_ENV_VAR} '{log_level_str}'. "
            f"Valid levels: {', '.join(sorted(valid_log_levels))}. "
            "Using INFO.",
            file=sys.stderr,
        )
        log_level_str = "INFO"

    log_level = getattr(logging, log_level_str)

    # stdout carries the MCP protocol
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    logger.info("Starting MCP server (press Ctrl+C to stop)...")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)

    logger.info("Server shutdown complete")


__all__ = [
    "mcp",
    "main",
    "app_lifespan",
    "AppContext",
    "AppContextType",
]
