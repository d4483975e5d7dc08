# Fabric Semantic Model MCP Server
# File: cache.py
# Version: v2

"""Single-slot access-token cache shared by concurrent tool calls.

The cache holds at most one token. Reads and writes both happen under an
``asyncio.Lock``; the caller performs the network fetch between a missed
``lookup`` and the following ``store`` without holding the lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .models import AccessToken


@runtime_checkable
class TokenCache(Protocol):
    """Storage capability used by ``CachingTokenProvider``."""

    async def lookup(self, valid_until: float) -> Optional[AccessToken]:
        """Return the cached token if it is still valid at ``valid_until``."""
        ...

    async def store(self, token: AccessToken) -> None:
        ...

    def stats(self) -> Dict[str, Any]:
        ...


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    stores: int = 0


class SingleSlotTokenCache:
    """In-process cache holding the most recently fetched token."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._token: Optional[AccessToken] = None
        self._stats = CacheStats()

    async def lookup(self, valid_until: float) -> Optional[AccessToken]:
        async with self._lock:
            token = self._token
            if token is not None and token.value and valid_until < token.expires_at:
                self._stats.hits += 1
                return token

            self._stats.misses += 1
            return None

    async def store(self, token: AccessToken) -> None:
        async with self._lock:
            self._token = token
            self._stats.stores += 1

    def stats(self) -> Dict[str, Any]:
        token = self._token
        return {
            "populated": token is not None,
            "expires_at": token.expires_at if token is not None else None,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "stores": self._stats.stores,
        }
