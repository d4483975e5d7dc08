# Fabric Semantic Model MCP Server
# File: parsing.py
# Version: v3

"""Translate Power BI REST payloads into the domain models.

Payloads are loosely typed, so every field is read defensively:

- Cells and scalar fields are coerced with ``coerce_cell``: integral numbers
  become ``int`` (when they fit in 64 bits), other numbers ``float``;
  strings, booleans and null pass through; nested objects/arrays are kept as
  compact JSON text.
- A body that is not valid JSON produces an empty result. The failure is
  logged, never raised.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import (
    ColumnMetadata,
    DatasetInfo,
    DatasetParameter,
    DatasetRefresh,
    DatasetUserAccess,
    DataSourceInfo,
    QueryResult,
    QueryScaleOutSettings,
    RefreshAttempt,
    TableMetadata,
)

logger = logging.getLogger(__name__)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------


def coerce_cell(value: Any) -> Any:
    """Map a decoded JSON value onto the scalar types exposed to callers."""
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return value
        return float(value)

    if isinstance(value, float):
        if value.is_integer() and _INT64_MIN <= value <= _INT64_MAX:
            return int(value)
        return value

    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _load_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        logger.warning("Could not parse %s response as JSON: %s", what, exc)
        return None


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _records(text: str, what: str) -> List[Dict[str, Any]]:
    """Return the dict entries of a ``{"value": [...]}`` envelope."""
    doc = _load_json(text, what)
    items = doc.get("value") if isinstance(doc, dict) else doc
    return [item for item in _as_list(items) if isinstance(item, dict)]


def _str(value: Any) -> Optional[str]:
    value = coerce_cell(value)
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    value = coerce_cell(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unrecognised timestamp %r", value)
        return None


# ---------------------------------------------------------------------------
# executeQueries
# ---------------------------------------------------------------------------


def _synthetic_column(slots: List[str], index: int) -> str:
    name = f"Column{index + 1}"
    suffix = 2
    while name in slots:
        name = f"Column{index + 1}_{suffix}"
        suffix += 1
    return name


def _merge_table(result: QueryResult, table: Dict[str, Any]) -> None:
    # One slot per position of this table; array rows are read through it.
    slots: List[str] = []

    def claim(index: int, name: Any = None) -> None:
        if not isinstance(name, str) or not name or name in slots:
            name = _synthetic_column(slots, index)
        slots.append(name)
        result.add_column(name)

    for position, column in enumerate(_as_list(table.get("columns"))):
        claim(position, column.get("name") if isinstance(column, dict) else None)

    for row in _as_list(table.get("rows")):
        parsed: Dict[str, Any] = {}

        if isinstance(row, dict):
            for key, cell in row.items():
                result.add_column(key)
                parsed[key] = coerce_cell(cell)
        elif isinstance(row, list):
            for index, cell in enumerate(row):
                if index >= len(slots):
                    claim(index)
                parsed[slots[index]] = coerce_cell(cell)
        else:
            continue

        result.rows.append(parsed)


def parse_query_result(text: str) -> QueryResult:
    """Flatten every table of an ``executeQueries`` response into one result."""
    result = QueryResult()
    doc = _load_json(text, "query")
    if not isinstance(doc, dict):
        return result

    for item in _as_list(doc.get("results")):
        if not isinstance(item, dict):
            continue
        for table in _as_list(item.get("tables")):
            if isinstance(table, dict):
                _merge_table(result, table)

    return result


# ---------------------------------------------------------------------------
# Metadata & dataset records
# ---------------------------------------------------------------------------


def parse_table_metadata(text: str) -> List[TableMetadata]:
    tables: List[TableMetadata] = []
    for item in _records(text, "tables"):
        columns = [
            ColumnMetadata(
                name=_str(col.get("name")),
                display_name=_str(col.get("displayName")),
                data_type=_str(col.get("dataType")),
            )
            for col in _as_list(item.get("columns"))
            if isinstance(col, dict)
        ]
        tables.append(
            TableMetadata(
                name=_str(item.get("name")),
                display_name=_str(item.get("displayName")),
                columns=columns,
            )
        )
    return tables


def _dataset_from(item: Dict[str, Any]) -> DatasetInfo:
    scale_out: Optional[QueryScaleOutSettings] = None
    raw_scale_out = item.get("queryScaleOutSettings")
    if isinstance(raw_scale_out, dict):
        scale_out = QueryScaleOutSettings(
            auto_sync_read_only_replicas=_bool(raw_scale_out.get("autoSyncReadOnlyReplicas")),
            max_read_only_replicas=_int(raw_scale_out.get("maxReadOnlyReplicas")),
        )

    return DatasetInfo(
        id=_str(item.get("id")),
        name=_str(item.get("name")),
        web_url=_str(item.get("webUrl")),
        add_rows_api_enabled=_bool(item.get("addRowsAPIEnabled")),
        configured_by=_str(item.get("configuredBy")),
        is_refreshable=_bool(item.get("isRefreshable")),
        is_effective_identity_required=_bool(item.get("isEffectiveIdentityRequired")),
        is_effective_identity_roles_required=_bool(item.get("isEffectiveIdentityRolesRequired")),
        is_on_prem_gateway_required=_bool(item.get("isOnPremGatewayRequired")),
        target_storage_mode=_str(item.get("targetStorageMode")),
        created_date=_datetime(item.get("createdDate")),
        create_report_embed_url=_str(item.get("createReportEmbedURL")),
        qna_embed_url=_str(item.get("qnaEmbedURL")),
        query_scale_out_settings=scale_out,
    )


def parse_datasets(text: str) -> List[DatasetInfo]:
    return [_dataset_from(item) for item in _records(text, "datasets")]


def parse_dataset_details(text: str) -> DatasetInfo:
    doc = _load_json(text, "dataset details")
    if not isinstance(doc, dict):
        return DatasetInfo()
    return _dataset_from(doc)


def parse_datasources(text: str) -> List[DataSourceInfo]:
    sources: List[DataSourceInfo] = []
    for item in _records(text, "datasources"):
        details: Dict[str, Optional[str]] = {}
        raw_details = item.get("connectionDetails")
        if isinstance(raw_details, dict):
            details = {str(key): _str(val) for key, val in raw_details.items()}

        sources.append(
            DataSourceInfo(
                datasource_type=_str(item.get("datasourceType")),
                datasource_id=_str(item.get("datasourceId")),
                gateway_id=_str(item.get("gatewayId")),
                connection_string=_str(item.get("connectionString")),
                name=_str(item.get("name")),
                connection_details=details,
            )
        )
    return sources


def parse_parameters(text: str) -> List[DatasetParameter]:
    parameters: List[DatasetParameter] = []
    for item in _records(text, "parameters"):
        suggested = [
            s for s in (_str(v) for v in _as_list(item.get("suggestedValues"))) if s is not None
        ]
        parameters.append(
            DatasetParameter(
                name=_str(item.get("name")),
                type=_str(item.get("type")),
                is_required=_bool(item.get("isRequired")),
                current_value=_str(item.get("currentValue")),
                suggested_values=suggested,
            )
        )
    return parameters


def parse_refresh_history(text: str) -> List[DatasetRefresh]:
    refreshes: List[DatasetRefresh] = []
    for item in _records(text, "refresh history"):
        attempts = [
            RefreshAttempt(
                attempt_id=_int(raw.get("attemptId")),
                start_time=_datetime(raw.get("startTime")),
                end_time=_datetime(raw.get("endTime")),
                type=_str(raw.get("type")),
                service_exception_json=_str(raw.get("serviceExceptionJson")),
            )
            for raw in _as_list(item.get("refreshAttempts"))
            if isinstance(raw, dict)
        ]
        refreshes.append(
            DatasetRefresh(
                refresh_type=_str(item.get("refreshType")),
                start_time=_datetime(item.get("startTime")),
                end_time=_datetime(item.get("endTime")),
                status=_str(item.get("status")),
                request_id=_str(item.get("requestId")),
                service_exception_json=_str(item.get("serviceExceptionJson")),
                attempts=attempts,
            )
        )
    return refreshes


def parse_dataset_users(text: str) -> List[DatasetUserAccess]:
    return [
        DatasetUserAccess(
            identifier=_str(item.get("identifier")),
            principal_type=_str(item.get("principalType")),
            access_right=_str(item.get("datasetUserAccessRight") or item.get("accessRight")),
        )
        for item in _records(text, "dataset users")
    ]
