# Fabric Semantic Model MCP Server
# File: config.py
# Version: v2

"""Configuration loading for the Fabric Semantic Model MCP Server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List
import os

from .errors import ConfigurationError

DEFAULT_API_BASE_URL = "https://api.powerbi.com/v1.0/myorg"


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_list_env(name: str) -> List[str]:
    """Parse a comma-separated environment variable into a cleaned list."""
    raw = os.getenv(name, "") or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


def _optional_env(name: str) -> str | None:
    val = os.getenv(name)
    if val is None or not val.strip():
        return None
    return val.strip()


@dataclass
class FabricConfig:
    """Resolved settings for talking to the Fabric / Power BI REST API.

    The Azure AD fields are only needed when the HTTP transport exchanges
    caller tokens on behalf of the user.
    """

    workspace_id: str | None
    default_dataset_id: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    http_timeout_seconds: int = 30
    verify_tls: bool = True

    # Identity chain
    exclude_ide_credentials: bool = False
    authentication_scopes: List[str] = field(default_factory=list)

    # On-behalf-of exchange (HTTP transport)
    azure_client_id: str | None = None
    azure_client_secret: str | None = None
    azure_tenant_id: str | None = None

    # Hosting
    http_host: str = "127.0.0.1"
    http_port: int = 5000
    log_level: str = "INFO"

    @property
    def delegated_auth_configured(self) -> bool:
        """True when every setting needed for the on-behalf-of exchange is set."""
        return bool(
            self.azure_client_id and self.azure_client_secret and self.azure_tenant_id
        )

    def validate(self) -> None:
        """Fail fast on settings the server cannot run without."""
        if not self.workspace_id:
            raise ConfigurationError(
                "FABRIC_WORKSPACE_ID is not set. "
                "Please configure it before starting the server."
            )
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"FABRIC_API_BASE_URL must be an absolute URL, got '{self.api_base_url}'."
            )

    @classmethod
    def from_env(cls) -> "FabricConfig":
        """Create configuration from environment variables."""
        api_base_url = _optional_env("FABRIC_API_BASE_URL") or DEFAULT_API_BASE_URL

        return cls(
            workspace_id=_optional_env("FABRIC_WORKSPACE_ID"),
            default_dataset_id=_optional_env("FABRIC_DEFAULT_DATASET_ID"),
            api_base_url=api_base_url.rstrip("/"),
            http_timeout_seconds=_parse_int_env(
                "FABRIC_HTTP_TIMEOUT_SECONDS", default=30, min_value=1, max_value=300
            ),
            verify_tls=_parse_bool_env("FABRIC_VERIFY_TLS", default=True),
            exclude_ide_credentials=_parse_bool_env(
                "FABRIC_EXCLUDE_IDE_CREDENTIALS", default=False
            ),
            authentication_scopes=_parse_list_env("FABRIC_AUTH_SCOPES"),
            azure_client_id=_optional_env("AZURE_AD_CLIENT_ID"),
            azure_client_secret=_optional_env("AZURE_AD_CLIENT_SECRET"),
            azure_tenant_id=_optional_env("AZURE_AD_TENANT_ID"),
            http_host=_optional_env("FABRIC_HTTP_HOST") or "127.0.0.1",
            http_port=_parse_int_env(
                "FABRIC_HTTP_PORT", default=5000, min_value=1, max_value=65535
            ),
            log_level=(_optional_env("FABRIC_LOG_LEVEL") or "INFO").upper(),
        )
