# Fabric Semantic Model MCP Server
# File: tools/__init__.py
# Version: v2

"""Helpers for registering MCP tools."""

from __future__ import annotations

from typing import Optional

from mcp.server.fastmcp import FastMCP  # type: ignore[import]

from ..cache import TokenCache
from ..client import FabricSemanticModelClient
from . import tasks


def register_all_tools(
    mcp: FastMCP,
    client: FabricSemanticModelClient,
    token_cache: Optional[TokenCache] = None,
) -> None:
    """Register all MCP tools exposed by this server."""
    tasks.register_tools(mcp, client, token_cache=token_cache)
