# Fabric Semantic Model MCP Server
# File: transports/http_server.py
# Version: v2

"""Streamable HTTP entrypoint for the Fabric Semantic Model MCP server.

This is the script behind the ``fabric-semantic-mcp-http`` console command.
The MCP endpoint is served at ``/mcp``. Each request's ``Authorization``
header is made available to the token chain, so callers can forward their
own Fabric token (or a token to exchange on their behalf).

The server runs stateless so that every tool call executes inside the
request that carried it.
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from ..config import FabricConfig
from ..request_context import ASGIApp, AuthorizationHeaderMiddleware
from ..server import configure_logging, create_server

logger = logging.getLogger(__name__)


def build_app(config: FabricConfig) -> ASGIApp:
    mcp = create_server(
        config,
        request_bound=True,
        stateless_http=True,
        host=config.http_host,
        port=config.http_port,
    )
    return AuthorizationHeaderMiddleware(mcp.streamable_http_app())


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    load_dotenv()
    config = FabricConfig.from_env()
    configure_logging(config.log_level)

    app = build_app(config)

    logger.info(
        "Fabric Semantic Model MCP server listening on http://%s:%s/mcp (on-behalf-of: %s)",
        config.http_host,
        config.http_port,
        "enabled" if config.delegated_auth_configured else "disabled",
    )
    uvicorn.run(app, host=config.http_host, port=config.http_port)


if __name__ == "__main__":
    main()
