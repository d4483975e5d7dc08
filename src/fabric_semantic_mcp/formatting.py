# Fabric Semantic Model MCP Server
# File: formatting.py
# Version: v2

"""Human-readable renderings of client results.

Every formatter returns plain text. An empty collection renders as an
empty string, and the tool layer substitutes its own default message.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional

from .models import (
    DatasetInfo,
    DatasetParameter,
    DatasetRefresh,
    DatasetUserAccess,
    DataSourceInfo,
    QueryResult,
    TableMetadata,
)

NO_RESULTS = "No results"
BULLET = "•"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _null(value: Any) -> str:
    return "NULL" if value is None else str(value)


def _when(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else "?"


def _yes_no(value: Optional[bool]) -> Optional[str]:
    if value is None:
        return None
    return "Yes" if value else "No"


def _labelled(lines: List[str], label: str, value: Any, indent: str = "  ") -> None:
    if value is None or value == "":
        return
    if isinstance(value, datetime):
        value = value.isoformat()
    lines.append(f"{indent}{label}: {value}")


def format_query_result(result: QueryResult) -> str:
    if not result.rows:
        return NO_RESULTS

    lines = [" | ".join(result.columns)]
    for row in result.rows:
        lines.append(" | ".join(_cell(row.get(col)) for col in result.columns))
    return "\n".join(lines)


def format_table_metadata(tables: Iterable[TableMetadata]) -> str:
    lines: List[str] = []
    for table in tables:
        lines.append(f"Table: {table.display_name or table.name}")
        for col in table.columns:
            lines.append(f"  - {col.display_name or col.name} ({col.data_type})")
    return "\n".join(lines)


def format_datasets(datasets: Iterable[DatasetInfo]) -> str:
    return "\n".join(f"{BULLET} {ds.name} (ID: {ds.id})" for ds in datasets)


def format_dataset_details(dataset: DatasetInfo) -> str:
    lines = [f"Dataset: {dataset.name or dataset.id or '(unnamed)'}"]
    _labelled(lines, "ID", dataset.id)
    _labelled(lines, "Web URL", dataset.web_url)
    _labelled(lines, "Configured by", dataset.configured_by)
    _labelled(lines, "Created", dataset.created_date)
    _labelled(lines, "Target storage mode", dataset.target_storage_mode)
    _labelled(lines, "Refreshable", _yes_no(dataset.is_refreshable))
    _labelled(lines, "Add rows API enabled", _yes_no(dataset.add_rows_api_enabled))
    _labelled(lines, "Effective identity required", _yes_no(dataset.is_effective_identity_required))
    _labelled(
        lines,
        "Effective identity roles required",
        _yes_no(dataset.is_effective_identity_roles_required),
    )
    _labelled(lines, "On-premises gateway required", _yes_no(dataset.is_on_prem_gateway_required))
    _labelled(lines, "Report embed URL", dataset.create_report_embed_url)
    _labelled(lines, "Q&A embed URL", dataset.qna_embed_url)

    scale_out = dataset.query_scale_out_settings
    if scale_out is not None:
        lines.append("  Query scale-out:")
        _labelled(
            lines,
            "Auto-sync read-only replicas",
            _yes_no(scale_out.auto_sync_read_only_replicas),
            indent="    ",
        )
        _labelled(lines, "Max read-only replicas", scale_out.max_read_only_replicas, indent="    ")

    return "\n".join(lines)


def format_datasources(sources: Iterable[DataSourceInfo]) -> str:
    lines: List[str] = []
    for source in sources:
        header = f"{BULLET} {source.datasource_type or 'Unknown'}"
        if source.name:
            header += f" {source.name}"
        if source.datasource_id:
            header += f" (ID: {source.datasource_id})"
        lines.append(header)

        _labelled(lines, "Gateway", source.gateway_id, indent="    ")
        _labelled(lines, "Connection string", source.connection_string, indent="    ")
        for key, value in source.connection_details.items():
            _labelled(lines, key, value, indent="    ")
    return "\n".join(lines)


def format_parameters(parameters: Iterable[DatasetParameter]) -> str:
    lines: List[str] = []
    for param in parameters:
        line = f"{BULLET} {param.name}"
        if param.type:
            line += f" ({param.type})"
        line += f" = {_null(param.current_value)}"
        if param.is_required:
            line += " [required]"
        lines.append(line)

        if param.suggested_values:
            lines.append(f"    Suggested: {', '.join(param.suggested_values)}")
    return "\n".join(lines)


def format_refresh_history(refreshes: Iterable[DatasetRefresh]) -> str:
    lines: List[str] = []
    for refresh in refreshes:
        lines.append(
            f"{BULLET} {refresh.status or 'Unknown'} ({refresh.refresh_type or 'Unknown'}) "
            f"{_when(refresh.start_time)} -> {_when(refresh.end_time)}"
        )
        _labelled(lines, "Request ID", refresh.request_id, indent="    ")
        _labelled(lines, "Error", refresh.service_exception_json, indent="    ")

        for attempt in refresh.attempts:
            line = f"    Attempt {_null(attempt.attempt_id)}"
            if attempt.type:
                line += f" [{attempt.type}]"
            line += f": {_when(attempt.start_time)} -> {_when(attempt.end_time)}"
            lines.append(line)
            _labelled(lines, "Error", attempt.service_exception_json, indent="      ")
    return "\n".join(lines)


def format_dataset_users(users: Iterable[DatasetUserAccess]) -> str:
    lines: List[str] = []
    for user in users:
        line = f"{BULLET} {user.identifier}"
        if user.principal_type:
            line += f" ({user.principal_type})"
        if user.access_right:
            line += f": {user.access_right}"
        lines.append(line)
    return "\n".join(lines)


def format_aggregation(function: str, table: str, column: str, value: Any) -> str:
    return f"{function}({table}.{column}) = {_null(value)}"


def format_distinct_values(table: str, column: str, values: Iterable[Any]) -> str:
    return f"{table}.{column}: {', '.join(_null(v) for v in values)}"
