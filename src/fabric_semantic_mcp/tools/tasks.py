# Fabric Semantic Model MCP Server
# File: tools/tasks.py
# Version: v5
#
# NOTE: This module is the single place where we define the behaviour that
# is exposed as MCP tools. The MCP transports (stdio / http) simply call
# `register_tools(server, client)` to wire these up.

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from ..cache import TokenCache
from ..client import FabricSemanticModelClient
from ..models import FabricResponse


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _render(response: FabricResponse[Any], default: str) -> str:
    """Collapse a response into the string returned to the MCP caller."""
    if not response.success:
        return f"Error: {response.error}"
    return response.formatted_text or default


def _make_error(code: str, message: str) -> Dict[str, Any]:
    return {"code": code, "message": message}


# ---------------------------------------------------------------------------
# Tool implementations
# ---------------------------------------------------------------------------


async def query_semantic_model(
    client: FabricSemanticModelClient, dax_query: str, dataset_id: Optional[str] = None
) -> str:
    response = await client.execute_query(dax_query, dataset_id)
    return _render(response, "Query executed successfully")


async def list_semantic_models(client: FabricSemanticModelClient) -> str:
    return _render(await client.list_datasets(), "No datasets found")


async def get_semantic_model_metadata(
    client: FabricSemanticModelClient, dataset_id: Optional[str] = None
) -> str:
    return _render(await client.get_metadata(dataset_id), "No metadata found")


async def get_dataset_details(
    client: FabricSemanticModelClient, dataset_id: Optional[str] = None
) -> str:
    return _render(await client.get_dataset_details(dataset_id), "No details found")


async def get_dataset_datasources(
    client: FabricSemanticModelClient, dataset_id: Optional[str] = None
) -> str:
    return _render(await client.get_datasources(dataset_id), "No datasources found")


async def get_dataset_parameters(
    client: FabricSemanticModelClient, dataset_id: Optional[str] = None
) -> str:
    return _render(await client.get_parameters(dataset_id), "No parameters found")


async def get_dataset_refresh_history(
    client: FabricSemanticModelClient,
    dataset_id: Optional[str] = None,
    top: Optional[int] = None,
) -> str:
    response = await client.get_refresh_history(dataset_id, top)
    return _render(response, "No refresh history found")


async def get_dataset_users(
    client: FabricSemanticModelClient, dataset_id: Optional[str] = None
) -> str:
    return _render(await client.get_dataset_users(dataset_id), "No users found")


async def aggregate_data(
    client: FabricSemanticModelClient,
    table_name: str,
    column_name: str,
    aggregation_function: str,
    dataset_id: Optional[str] = None,
) -> str:
    response = await client.aggregate(table_name, column_name, aggregation_function, dataset_id)
    return _render(response, "Aggregation completed")


async def get_distinct_values(
    client: FabricSemanticModelClient,
    table_name: str,
    column_name: str,
    dataset_id: Optional[str] = None,
) -> str:
    response = await client.get_distinct_values(table_name, column_name, dataset_id)
    return _render(response, "No distinct values found")


async def connection_status(
    client: FabricSemanticModelClient, token_cache: Optional[TokenCache] = None
) -> Dict[str, Any]:
    """Redacted configuration snapshot plus a token acquisition check."""
    cfg = client.config

    checks: List[Dict[str, Any]] = []
    t0 = time.time()
    try:
        ok = await client.ping()
        error = None if ok else _make_error("CONFIG_ERROR", "FABRIC_WORKSPACE_ID is not set.")
    except Exception as exc:
        ok = False
        error = _make_error("AUTH_ERROR", str(exc))
    checks.append(
        {
            "name": "token",
            "ok": ok,
            "error": error,
            "elapsed_ms": int((time.time() - t0) * 1000),
        }
    )

    return {
        "ok": all(check["ok"] for check in checks),
        "config": {
            "api_base_url": cfg.api_base_url,
            "workspace_configured": bool(cfg.workspace_id),
            "default_dataset_configured": bool(cfg.default_dataset_id),
            "http_timeout_seconds": cfg.http_timeout_seconds,
            "verify_tls": bool(cfg.verify_tls),
            "delegated_auth_configured": cfg.delegated_auth_configured,
        },
        "checks": checks,
        "token_cache": token_cache.stats() if token_cache is not None else None,
    }


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_tools(
    server: Any,
    client: FabricSemanticModelClient,
    token_cache: Optional[TokenCache] = None,
) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(
        name="query_semantic_model",
        description="Executes a DAX query against a Microsoft Fabric semantic model and returns the results.",
    )
    async def mcp_query_semantic_model(dax_query: str, dataset_id: Optional[str] = None) -> str:
        return await query_semantic_model(client, dax_query=dax_query, dataset_id=dataset_id)

    @server.tool(
        name="list_semantic_models",
        description="Lists all available semantic models (datasets) in the Microsoft Fabric workspace.",
    )
    async def mcp_list_semantic_models() -> str:
        return await list_semantic_models(client)

    @server.tool(
        name="get_semantic_model_metadata",
        description="Retrieves table/column schema for a semantic model (requires Push API datasets).",
    )
    async def mcp_get_semantic_model_metadata(dataset_id: Optional[str] = None) -> str:
        return await get_semantic_model_metadata(client, dataset_id=dataset_id)

    @server.tool(
        name="get_dataset_details",
        description="Retrieves full dataset info (owner, created, storage mode, refresh, security, scale-out).",
    )
    async def mcp_get_dataset_details(dataset_id: Optional[str] = None) -> str:
        return await get_dataset_details(client, dataset_id=dataset_id)

    @server.tool(
        name="get_dataset_datasources",
        description="Lists all datasources configured for a Microsoft Fabric dataset.",
    )
    async def mcp_get_dataset_datasources(dataset_id: Optional[str] = None) -> str:
        return await get_dataset_datasources(client, dataset_id=dataset_id)

    @server.tool(
        name="get_dataset_parameters",
        description="Lists mashup parameters defined for a Microsoft Fabric dataset.",
    )
    async def mcp_get_dataset_parameters(dataset_id: Optional[str] = None) -> str:
        return await get_dataset_parameters(client, dataset_id=dataset_id)

    @server.tool(
        name="get_dataset_refresh_history",
        description="Retrieves refresh history entries for a dataset, optionally limited to the latest `top`.",
    )
    async def mcp_get_dataset_refresh_history(
        dataset_id: Optional[str] = None, top: Optional[int] = None
    ) -> str:
        return await get_dataset_refresh_history(client, dataset_id=dataset_id, top=top)

    @server.tool(
        name="get_dataset_users",
        description="Lists principals that have access to a Microsoft Fabric dataset.",
    )
    async def mcp_get_dataset_users(dataset_id: Optional[str] = None) -> str:
        return await get_dataset_users(client, dataset_id=dataset_id)

    @server.tool(
        name="aggregate_data",
        description="Performs an aggregation (SUM, AVG, COUNT, MIN, MAX) on a column in a semantic model table.",
    )
    async def mcp_aggregate_data(
        table_name: str,
        column_name: str,
        aggregation_function: str,
        dataset_id: Optional[str] = None,
    ) -> str:
        return await aggregate_data(
            client,
            table_name=table_name,
            column_name=column_name,
            aggregation_function=aggregation_function,
            dataset_id=dataset_id,
        )

    @server.tool(
        name="get_distinct_values",
        description="Retrieves all distinct values from a column in a semantic model table.",
    )
    async def mcp_get_distinct_values(
        table_name: str, column_name: str, dataset_id: Optional[str] = None
    ) -> str:
        return await get_distinct_values(
            client, table_name=table_name, column_name=column_name, dataset_id=dataset_id
        )

    @server.tool(
        name="get_connection_status",
        description="Return redacted connection settings, a token check and token-cache stats (no secrets).",
    )
    async def mcp_get_connection_status() -> Dict[str, Any]:
        return await connection_status(client, token_cache=token_cache)
