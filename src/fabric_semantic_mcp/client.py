# Fabric Semantic Model MCP Server
# File: client.py
# Version: v7
"""High-level client for the Power BI / Fabric semantic model REST API.

Implements:

- execute_query() via ``datasets/{id}/executeQueries``
- get_metadata() via ``datasets/{id}/tables``
- list_datasets() via ``groups/{workspace}/datasets``
- get_dataset_details(), get_datasources(), get_parameters(),
  get_refresh_history(), get_dataset_users() for per-dataset records
- aggregate() and get_distinct_values(), built on execute_query()

Every operation returns a ``FabricResponse``. Remote failures, token
failures and transport errors are folded into ``FabricResponse.fail``;
only task cancellation propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import quote

import httpx

from . import formatting, parsing
from .auth import TokenProvider
from .config import FabricConfig
from .models import (
    AggregationResult,
    DatasetInfo,
    DatasetParameter,
    DatasetRefresh,
    DatasetUserAccess,
    DataSourceInfo,
    DistinctValuesResult,
    FabricResponse,
    QueryResult,
    TableMetadata,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISSING_DATASET_ERROR = "Dataset ID not provided and no default dataset configured"
MISSING_WORKSPACE_ERROR = "Workspace ID is not configured"

# Accepted aggregation names mapped to the DAX function they run.
AGGREGATION_FUNCTIONS: Dict[str, str] = {
    "SUM": "SUM",
    "COUNT": "COUNT",
    "AVERAGE": "AVERAGE",
    "AVG": "AVERAGE",
    "MIN": "MIN",
    "MAX": "MAX",
}


def column_reference(table: str, column: str) -> str:
    """Return a quoted DAX column reference such as ``'Sales'[Amount]``."""
    escaped_table = table.replace("'", "''")
    escaped_column = column.replace("]", "]]")
    return f"'{escaped_table}'[{escaped_column}]"


def build_aggregation_query(table: str, column: str, dax_function: str) -> str:
    return f'EVALUATE ROW("Result", {dax_function}({column_reference(table, column)}))'


def build_distinct_values_query(table: str, column: str) -> str:
    return f"EVALUATE VALUES({column_reference(table, column)})"


@dataclass
class FabricSemanticModelClient:
    """Wrapper around the semantic model endpoints of one workspace.

    ``token_provider`` supplies the bearer token for each request. Pass
    ``transport`` to route requests somewhere other than the network
    (``httpx.MockTransport`` in tests).
    """

    config: FabricConfig
    token_provider: TokenProvider
    transport: Optional[httpx.AsyncBaseTransport] = None

    # ------------------------------------------------------------------
    # Basic health
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """Check that a token can be obtained and a workspace is configured."""
        if not self.config.workspace_id:
            return False
        await self.token_provider.get_access_token()
        return True

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _resolve(
        self, dataset_id: Optional[str], needs_dataset: bool = True
    ) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(dataset_id, error)``; exactly one of them is set."""
        dataset = dataset_id or self.config.default_dataset_id
        if needs_dataset and not dataset:
            return None, MISSING_DATASET_ERROR
        if not self.config.workspace_id:
            return None, MISSING_WORKSPACE_ERROR
        return dataset, None

    def _workspace_url(self) -> str:
        base_url = self.config.api_base_url.rstrip("/")
        workspace = quote(self.config.workspace_id or "", safe="")
        return f"{base_url}/groups/{workspace}/datasets"

    def _dataset_url(self, dataset_id: str, operation: Optional[str] = None) -> str:
        url = f"{self._workspace_url()}/{quote(dataset_id, safe='')}"
        return f"{url}/{operation}" if operation else url

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        token = await self.token_provider.get_access_token()

        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(
            timeout=float(self.config.http_timeout_seconds),
            verify=self.config.verify_tls,
            transport=self.transport,
        ) as http_client:
            return await http_client.request(
                method, url, headers=headers, params=params, json=json_body
            )

    @staticmethod
    def _http_failure(failure: str, response: httpx.Response) -> FabricResponse[Any]:
        status = response.status_code
        logger.warning("%s (HTTP %s) for %s", failure, status, response.request.url)
        return FabricResponse.fail(f"{failure}: HTTP {status} - {response.text}")

    @staticmethod
    def _exception_failure(action: str, exc: Exception) -> FabricResponse[Any]:
        logger.warning("Exception %s: %s", action, exc)
        return FabricResponse.fail(f"Exception {action}: {exc}")

    async def _get(
        self,
        dataset_id: Optional[str],
        operation: Optional[str],
        *,
        failure: str,
        action: str,
        parse: Callable[[str], T],
        render: Callable[[T], str],
        params: Optional[Dict[str, Any]] = None,
    ) -> FabricResponse[T]:
        dataset, error = self._resolve(dataset_id)
        if error:
            return FabricResponse.fail(error)

        try:
            response = await self._send(
                "GET", self._dataset_url(dataset or "", operation), params=params
            )
            if not response.is_success:
                return self._http_failure(failure, response)

            data = parse(response.text)
            return FabricResponse.ok(data, render(data))
        except Exception as exc:
            return self._exception_failure(action, exc)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def execute_query(
        self, query_text: str, dataset_id: Optional[str] = None
    ) -> FabricResponse[QueryResult]:
        """Run a DAX query and return its rows as a ``QueryResult``."""
        dataset, error = self._resolve(dataset_id)
        if error:
            return FabricResponse.fail(error)

        body = {
            "queries": [{"query": query_text}],
            "serializerSettings": {"includeNulls": False},
        }

        try:
            response = await self._send(
                "POST", self._dataset_url(dataset or "", "executeQueries"), json_body=body
            )
            if not response.is_success:
                return self._http_failure("Query execution failed", response)

            result = parsing.parse_query_result(response.text)
            return FabricResponse.ok(result, formatting.format_query_result(result))
        except Exception as exc:
            return self._exception_failure("executing DAX query", exc)

    async def aggregate(
        self,
        table: str,
        column: str,
        function: str,
        dataset_id: Optional[str] = None,
    ) -> FabricResponse[AggregationResult]:
        """Compute a single aggregate over ``table[column]`` remotely.

        ``function`` is matched case-insensitively; ``AVG`` runs as
        ``AVERAGE`` but the label keeps the name as given.
        """
        label = (function or "").strip().upper()
        dax_function = AGGREGATION_FUNCTIONS.get(label)
        if dax_function is None:
            return FabricResponse.fail(
                f"Unsupported aggregation function '{function}'. "
                f"Supported functions: {', '.join(AGGREGATION_FUNCTIONS)}"
            )

        try:
            inner = await self.execute_query(
                build_aggregation_query(table, column, dax_function), dataset_id
            )
            if not inner.success or inner.data is None or not inner.data.rows:
                return FabricResponse.fail(inner.error or "No results from aggregation")

            value = next(iter(inner.data.rows[0].values()), None)

            text = formatting.format_aggregation(label, table, column, value)
            aggregation = AggregationResult(
                table_name=table,
                column_name=column,
                aggregation_function=label,
                result=value,
                formatted_text=text,
            )
            return FabricResponse.ok(aggregation, text)
        except Exception as exc:
            return self._exception_failure("during aggregation", exc)

    async def get_distinct_values(
        self, table: str, column: str, dataset_id: Optional[str] = None
    ) -> FabricResponse[DistinctValuesResult]:
        try:
            inner = await self.execute_query(
                build_distinct_values_query(table, column), dataset_id
            )
            if not inner.success or inner.data is None:
                return FabricResponse.fail(inner.error or "Failed to get distinct values")

            values: List[Any] = []
            for row in inner.data.rows:
                values.extend(row.values())

            text = formatting.format_distinct_values(table, column, values)
            distinct = DistinctValuesResult(
                table_name=table,
                column_name=column,
                values=values,
                formatted_text=text,
            )
            return FabricResponse.ok(distinct, text)
        except Exception as exc:
            return self._exception_failure("getting distinct values", exc)

    # ------------------------------------------------------------------
    # Dataset catalogue
    # ------------------------------------------------------------------

    async def list_datasets(self) -> FabricResponse[List[DatasetInfo]]:
        """List the semantic models in the configured workspace."""
        _, error = self._resolve(None, needs_dataset=False)
        if error:
            return FabricResponse.fail(error)

        try:
            response = await self._send("GET", self._workspace_url())
            if not response.is_success:
                return self._http_failure("Failed to list datasets", response)

            datasets = parsing.parse_datasets(response.text)
            return FabricResponse.ok(datasets, formatting.format_datasets(datasets))
        except Exception as exc:
            return self._exception_failure("listing datasets", exc)

    async def get_metadata(
        self, dataset_id: Optional[str] = None
    ) -> FabricResponse[List[TableMetadata]]:
        """Return table/column metadata (available for push datasets)."""
        return await self._get(
            dataset_id,
            "tables",
            failure="Failed to get metadata",
            action="getting metadata",
            parse=parsing.parse_table_metadata,
            render=formatting.format_table_metadata,
        )

    async def get_dataset_details(
        self, dataset_id: Optional[str] = None
    ) -> FabricResponse[DatasetInfo]:
        return await self._get(
            dataset_id,
            None,
            failure="Failed to get dataset details",
            action="getting dataset details",
            parse=parsing.parse_dataset_details,
            render=formatting.format_dataset_details,
        )

    async def get_datasources(
        self, dataset_id: Optional[str] = None
    ) -> FabricResponse[List[DataSourceInfo]]:
        return await self._get(
            dataset_id,
            "datasources",
            failure="Failed to get datasources",
            action="getting datasources",
            parse=parsing.parse_datasources,
            render=formatting.format_datasources,
        )

    async def get_parameters(
        self, dataset_id: Optional[str] = None
    ) -> FabricResponse[List[DatasetParameter]]:
        return await self._get(
            dataset_id,
            "parameters",
            failure="Failed to get parameters",
            action="getting parameters",
            parse=parsing.parse_parameters,
            render=formatting.format_parameters,
        )

    async def get_refresh_history(
        self, dataset_id: Optional[str] = None, top: Optional[int] = None
    ) -> FabricResponse[List[DatasetRefresh]]:
        """Return refresh history, newest first, optionally limited to ``top``."""
        params = {"$top": top} if top is not None else None
        return await self._get(
            dataset_id,
            "refreshes",
            failure="Failed to get refresh history",
            action="getting refresh history",
            parse=parsing.parse_refresh_history,
            render=formatting.format_refresh_history,
            params=params,
        )

    async def get_dataset_users(
        self, dataset_id: Optional[str] = None
    ) -> FabricResponse[List[DatasetUserAccess]]:
        return await self._get(
            dataset_id,
            "users",
            failure="Failed to get dataset users",
            action="getting dataset users",
            parse=parsing.parse_dataset_users,
            render=formatting.format_dataset_users,
        )
