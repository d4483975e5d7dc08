# Fabric Semantic Model MCP Server
# File: server.py
# Version: v3

"""Server assembly shared by the stdio and HTTP transports."""

from __future__ import annotations

import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from .auth import CachingTokenProvider, build_token_provider
from .client import FabricSemanticModelClient
from .config import FabricConfig
from .errors import ConfigurationError
from .tools import register_all_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "fabric-semantic-model-mcp"


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout belongs to the stdio protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


def create_server(
    config: FabricConfig,
    *,
    request_bound: bool = False,
    **settings: Any,
) -> FastMCP:
    """Build a FastMCP server with every Fabric tool registered.

    ``request_bound`` selects the HTTP token chain (caller bearer token,
    optionally exchanged on behalf of the caller). Extra ``settings`` are
    passed to ``FastMCP``.
    """
    try:
        config.validate()
    except ConfigurationError as exc:
        # Tools still report the problem per call.
        logger.warning("Configuration incomplete: %s", exc)

    caching = CachingTokenProvider.from_config(config)
    provider = build_token_provider(config, caching, request_bound=request_bound)
    client = FabricSemanticModelClient(config=config, token_provider=provider)

    mcp = FastMCP(SERVER_NAME, **settings)
    register_all_tools(mcp, client, token_cache=caching.cache)
    return mcp
