# Fabric Semantic Model MCP Server
# File: errors.py
# Version: v1

"""Exception types raised inside the server.

Only the token layer raises these past its own boundary. The REST client
folds every one of them into a failed ``FabricResponse``.
"""

from __future__ import annotations


class FabricMcpError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigurationError(FabricMcpError):
    """A required identifier or setting is missing."""


class AuthError(FabricMcpError):
    """The identity chain could not produce an access token."""


class ExchangeError(FabricMcpError):
    """An on-behalf-of token exchange was rejected or failed."""
