# Fabric Semantic Model MCP Server
# File: auth.py
# Version: v4

"""Access-token providers for the Fabric / Power BI REST API.

Every provider exposes the same capability, ``await get_access_token()``,
so they compose freely:

- ``CachingTokenProvider`` wraps a ``TokenCredentialSource`` (the Azure
  identity chain) with an expiry-aware single-slot cache.
- ``RequestBoundTokenProvider`` forwards the caller's bearer token from the
  inbound HTTP request, falling back to a ``CachingTokenProvider``.
- ``ComposedTokenProvider`` feeds any provider's token through a
  ``DelegatedTokenExchanger`` (on-behalf-of flow).

``build_token_provider`` wires the chain for a given transport.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import msal
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from .cache import SingleSlotTokenCache, TokenCache
from .config import FabricConfig
from .errors import AuthError, ConfigurationError, ExchangeError
from .models import AccessToken
from .request_context import get_authorization_header

logger = logging.getLogger(__name__)

FABRIC_DEFAULT_SCOPE = "https://analysis.windows.net/powerbi/api/.default"
DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"

# Cached tokens are refreshed once they are this close to expiry.
TOKEN_REFRESH_BUFFER_SECONDS = 5 * 60

_BEARER_PREFIX = "bearer "


@runtime_checkable
class TokenProvider(Protocol):
    async def get_access_token(self) -> str:
        ...


class CredentialSource(Protocol):
    async def fetch_token(self) -> AccessToken:
        ...


# ---------------------------------------------------------------------------
# Identity chain
# ---------------------------------------------------------------------------


class TokenCredentialSource:
    """Fetch raw tokens for a fixed scope from an Azure credential.

    By default this is a ``DefaultAzureCredential`` (environment, workload
    and managed identity, developer tools, then interactive browser). The
    credential is synchronous, so calls run in a worker thread.
    """

    def __init__(
        self,
        credential: Any = None,
        scope: str = FABRIC_DEFAULT_SCOPE,
        exclude_ide_credentials: bool = False,
    ) -> None:
        if credential is None:
            credential = DefaultAzureCredential(
                exclude_interactive_browser_credential=False,
                exclude_visual_studio_code_credential=exclude_ide_credentials,
            )
        self.credential = credential
        self.scope = scope

    async def fetch_token(self) -> AccessToken:
        try:
            raw = await asyncio.to_thread(self.credential.get_token, self.scope)
        except ClientAuthenticationError as exc:
            raise AuthError(
                f"Failed to acquire an access token for scope '{self.scope}': {exc}"
            ) from exc

        return AccessToken(value=raw.token, expires_at=float(raw.expires_on))


class CachingTokenProvider:
    """Serve tokens from a shared cache, refreshing shortly before expiry.

    The fetch happens outside the cache lock, so concurrent callers that
    all miss may each fetch once; the last write wins.
    """

    def __init__(
        self,
        source: CredentialSource,
        cache: Optional[TokenCache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.cache: TokenCache = cache if cache is not None else SingleSlotTokenCache()
        self._clock = clock

    @classmethod
    def from_config(cls, config: FabricConfig) -> "CachingTokenProvider":
        source = TokenCredentialSource(exclude_ide_credentials=config.exclude_ide_credentials)
        return cls(source=source)

    async def get_access_token(self) -> str:
        cached = await self.cache.lookup(self._clock() + TOKEN_REFRESH_BUFFER_SECONDS)
        if cached is not None:
            return cached.value

        token = await self.source.fetch_token()
        await self.cache.store(token)
        logger.debug("Acquired new access token (expires at %s)", token.expires_at)
        return token.value


# ---------------------------------------------------------------------------
# Caller-forwarded tokens
# ---------------------------------------------------------------------------


def _extract_bearer(header: Optional[str]) -> Optional[str]:
    if not header or header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX):].strip()
    return token or None


class RequestBoundTokenProvider:
    """Use the caller's bearer token when the current request carries one.

    The token is returned verbatim. Signature, audience and issuer checks
    belong to whatever authenticates the request upstream.
    """

    def __init__(
        self,
        fallback: TokenProvider,
        header_getter: Callable[[], Optional[str]] = get_authorization_header,
    ) -> None:
        self.fallback = fallback
        self._header_getter = header_getter

    async def get_access_token(self) -> str:
        header = self._header_getter()

        if header is None:
            logger.debug("No request Authorization header available")
        else:
            token = _extract_bearer(header)
            if token is not None:
                return token
            logger.debug("Authorization header is not a usable Bearer token")

        logger.debug("Falling back to the Azure identity chain for token acquisition")
        return await self.fallback.get_access_token()


# ---------------------------------------------------------------------------
# On-behalf-of exchange
# ---------------------------------------------------------------------------


class DelegatedTokenExchanger:
    """Exchange a caller token for a Fabric token via the on-behalf-of flow."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        scopes: Sequence[str] = (FABRIC_DEFAULT_SCOPE,),
        authority_host: str = DEFAULT_AUTHORITY_HOST,
        app: Any = None,
    ) -> None:
        self.client_id = client_id
        self.tenant_id = tenant_id
        self.scopes: List[str] = list(scopes) or [FABRIC_DEFAULT_SCOPE]
        self.authority = f"{authority_host.rstrip('/')}/{tenant_id}"
        self._client_secret = client_secret
        self._app = app

    @classmethod
    def from_config(cls, config: FabricConfig) -> "DelegatedTokenExchanger":
        if not config.delegated_auth_configured:
            raise ConfigurationError(
                "On-behalf-of exchange needs AZURE_AD_CLIENT_ID, "
                "AZURE_AD_CLIENT_SECRET and AZURE_AD_TENANT_ID."
            )
        return cls(
            client_id=config.azure_client_id or "",
            client_secret=config.azure_client_secret or "",
            tenant_id=config.azure_tenant_id or "",
            scopes=config.authentication_scopes or [FABRIC_DEFAULT_SCOPE],
        )

    def _get_app(self) -> Any:
        # Built lazily: msal resolves the authority over the network.
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                self.client_id,
                authority=self.authority,
                client_credential=self._client_secret,
            )
        return self._app

    def _acquire(self, caller_token: str) -> Dict[str, Any]:
        return self._get_app().acquire_token_on_behalf_of(
            user_assertion=caller_token,
            scopes=self.scopes,
        )

    async def exchange_on_behalf_of(self, caller_token: str) -> str:
        try:
            result = await asyncio.to_thread(self._acquire, caller_token)
        except Exception as exc:
            logger.error("Error acquiring Fabric on-behalf-of token: %s", exc, exc_info=True)
            raise ExchangeError(f"On-behalf-of token exchange failed: {exc}") from exc

        token = result.get("access_token") if isinstance(result, dict) else None
        if token:
            return token

        error = "unknown_error"
        description = "no access_token in response"
        if isinstance(result, dict):
            error = result.get("error") or error
            description = result.get("error_description") or description

        logger.error("On-behalf-of token exchange rejected (%s): %s", error, description)
        raise ExchangeError(f"On-behalf-of token exchange failed ({error}): {description}")


class ComposedTokenProvider:
    """Fetch a token from ``base`` and exchange it on behalf of the caller.

    The exchanged token is not cached here; every call re-exchanges.
    """

    def __init__(self, base: TokenProvider, exchanger: DelegatedTokenExchanger) -> None:
        self.base = base
        self.exchanger = exchanger

    async def get_access_token(self) -> str:
        caller_token = await self.base.get_access_token()
        return await self.exchanger.exchange_on_behalf_of(caller_token)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_token_provider(
    config: FabricConfig,
    caching: CachingTokenProvider,
    *,
    request_bound: bool = False,
) -> TokenProvider:
    """Assemble the provider chain for a transport.

    stdio: the cached identity chain on its own.
    HTTP: the caller's bearer token (identity chain as fallback), exchanged
    on behalf of the caller when Azure AD app settings are configured.
    """
    if not request_bound:
        return caching

    provider: TokenProvider = RequestBoundTokenProvider(fallback=caching)
    if config.delegated_auth_configured:
        provider = ComposedTokenProvider(
            base=provider,
            exchanger=DelegatedTokenExchanger.from_config(config),
        )
    else:
        logger.info("Azure AD app settings incomplete; on-behalf-of exchange disabled.")
    return provider
