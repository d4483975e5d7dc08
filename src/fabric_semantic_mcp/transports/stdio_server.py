# Fabric Semantic Model MCP Server
# File: transports/stdio_server.py
# Version: v3

"""STDIO entrypoint for the Fabric Semantic Model MCP server.

This is the script behind the ``fabric-semantic-mcp`` console command.

It:

- loads settings from the environment (and an optional ``.env`` file),
- creates a FastMCP server with the cached Azure identity chain, and
- runs the built-in stdio transport.
"""

from __future__ import annotations

from dotenv import load_dotenv

from ..config import FabricConfig
from ..server import configure_logging, create_server


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    load_dotenv()
    config = FabricConfig.from_env()
    configure_logging(config.log_level)

    mcp = create_server(config)

    # Let FastMCP handle stdio + event loop setup.
    mcp.run()


if __name__ == "__main__":
    main()
