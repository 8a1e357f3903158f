"""Entry point for diffedit-mcp MCP server.

Tools must be imported before the server starts so their @mcp.tool()
decorators register.
"""


def main() -> None:
    """Register tools and start the MCP server."""
    from . import tools  # noqa: F401 - imported for side effects (decorator registration)
    from .server import main as server_main

    server_main()


if __name__ == "__main__":
    main()
