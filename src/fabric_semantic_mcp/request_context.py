# Fabric Semantic Model MCP Server
# File: request_context.py
# Version: v1

"""Per-request access to the inbound ``Authorization`` header.

The HTTP transport wraps its ASGI app in ``AuthorizationHeaderMiddleware``,
which binds the header to a context variable for the lifetime of the
request. Anything running inside that request (tool handlers, token
providers) can then read it with ``get_authorization_header``. Outside a
request, the value is ``None``.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional

_authorization_header: ContextVar[Optional[str]] = ContextVar(
    "fabric_authorization_header", default=None
)

Scope = Dict[str, Any]
Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


def get_authorization_header() -> Optional[str]:
    """Return the current request's Authorization header, if any."""
    return _authorization_header.get()


@contextmanager
def bind_authorization_header(value: Optional[str]) -> Iterator[None]:
    """Make ``value`` the current Authorization header inside the block."""
    token = _authorization_header.set(value)
    try:
        yield
    finally:
        _authorization_header.reset(token)


class AuthorizationHeaderMiddleware:
    """Pure ASGI middleware exposing the Authorization header to the request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        header: Optional[str] = None
        for name, value in scope.get("headers") or []:
            if name.lower() == b"authorization":
                header = value.decode("latin-1")
                break

        with bind_authorization_header(header):
            await self.app(scope, receive, send)
