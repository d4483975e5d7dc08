# Fabric Semantic Model MCP Server
# File: models.py
# Version: v3

"""Domain models used by the Fabric Semantic Model MCP server."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class AccessToken:
    """An access token and the POSIX timestamp at which it expires."""

    value: str
    expires_at: float


@dataclass
class FabricResponse(Generic[T]):
    """Result envelope returned by every client operation.

    Use ``ok`` / ``fail`` rather than the constructor so that a successful
    response never carries an error and a failed one never carries data.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    formatted_text: str = ""

    @classmethod
    def ok(cls, data: T, formatted_text: str = "") -> "FabricResponse[T]":
        return cls(success=True, data=data, error=None, formatted_text=formatted_text)

    @classmethod
    def fail(cls, error: str) -> "FabricResponse[T]":
        return cls(success=False, data=None, error=error, formatted_text="")


@dataclass
class QueryResult:
    """Tabular result of a query.

    ``columns`` holds unique names in first-seen order; each row maps a
    subset of those names to a scalar (or ``None``).
    """

    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def add_column(self, name: str) -> None:
        if name not in self.columns:
            self.columns.append(name)


@dataclass
class ColumnMetadata:
    name: Optional[str] = None
    display_name: Optional[str] = None
    data_type: Optional[str] = None


@dataclass
class TableMetadata:
    name: Optional[str] = None
    display_name: Optional[str] = None
    columns: List[ColumnMetadata] = field(default_factory=list)


@dataclass
class QueryScaleOutSettings:
    auto_sync_read_only_replicas: Optional[bool] = None
    max_read_only_replicas: Optional[int] = None


@dataclass
class DatasetInfo:
    """A semantic model (dataset) as returned by the datasets API."""

    id: Optional[str] = None
    name: Optional[str] = None
    web_url: Optional[str] = None
    add_rows_api_enabled: Optional[bool] = None
    configured_by: Optional[str] = None
    is_refreshable: Optional[bool] = None
    is_effective_identity_required: Optional[bool] = None
    is_effective_identity_roles_required: Optional[bool] = None
    is_on_prem_gateway_required: Optional[bool] = None
    target_storage_mode: Optional[str] = None
    created_date: Optional[datetime] = None
    create_report_embed_url: Optional[str] = None
    qna_embed_url: Optional[str] = None
    query_scale_out_settings: Optional[QueryScaleOutSettings] = None


@dataclass
class DataSourceInfo:
    datasource_type: Optional[str] = None
    datasource_id: Optional[str] = None
    gateway_id: Optional[str] = None
    connection_string: Optional[str] = None
    name: Optional[str] = None
    connection_details: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class DatasetParameter:
    name: Optional[str] = None
    type: Optional[str] = None
    is_required: Optional[bool] = None
    current_value: Optional[str] = None
    suggested_values: List[str] = field(default_factory=list)


@dataclass
class RefreshAttempt:
    attempt_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    type: Optional[str] = None
    service_exception_json: Optional[str] = None


@dataclass
class DatasetRefresh:
    refresh_type: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[str] = None
    request_id: Optional[str] = None
    service_exception_json: Optional[str] = None
    attempts: List[RefreshAttempt] = field(default_factory=list)


@dataclass
class DatasetUserAccess:
    identifier: Optional[str] = None
    principal_type: Optional[str] = None
    access_right: Optional[str] = None


@dataclass
class AggregationResult:
    table_name: str
    column_name: str
    aggregation_function: str
    result: Any = None
    formatted_text: str = ""


@dataclass
class DistinctValuesResult:
    table_name: str
    column_name: str
    values: List[Any] = field(default_factory=list)
    formatted_text: str = ""
