# Fabric Semantic Model MCP Server
# File: tests/test_tools.py
# Version: v1

"""Tests for the MCP tool layer and server wiring.

Tool functions are exercised against a fake client that returns canned
``FabricResponse`` objects, so no HTTP or identity calls are made.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from fabric_semantic_mcp import auth
from fabric_semantic_mcp.cache import SingleSlotTokenCache
from fabric_semantic_mcp.config import FabricConfig
from fabric_semantic_mcp.models import FabricResponse
from fabric_semantic_mcp.request_context import AuthorizationHeaderMiddleware
from fabric_semantic_mcp.server import create_server
from fabric_semantic_mcp.tools import tasks
from fabric_semantic_mcp.transports import http_server

EXPECTED_TOOLS = {
    "query_semantic_model",
    "list_semantic_models",
    "get_semantic_model_metadata",
    "get_dataset_details",
    "get_dataset_datasources",
    "get_dataset_parameters",
    "get_dataset_refresh_history",
    "get_dataset_users",
    "aggregate_data",
    "get_distinct_values",
    "get_connection_status",
}


def _run(coro):
    """Helper to run async coroutines in plain pytest tests."""
    return asyncio.run(coro)


class DummyServer:
    """Minimal duck-typed MCP server that records registered tools."""

    def __init__(self) -> None:
        self.tools: Dict[str, Any] = {}

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs["name"]] = fn
            return fn

        return decorator


class _FakeClient:
    """Returns the same canned response from every operation."""

    def __init__(self, response: FabricResponse[Any]) -> None:
        self.response = response
        self.config = FabricConfig(workspace_id="ws-1")
        self.calls: List[Any] = []

    def _record(self, name: str, *args: Any) -> FabricResponse[Any]:
        self.calls.append((name,) + args)
        return self.response

    async def execute_query(self, query_text, dataset_id=None):
        return self._record("execute_query", query_text, dataset_id)

    async def list_datasets(self):
        return self._record("list_datasets")

    async def get_metadata(self, dataset_id=None):
        return self._record("get_metadata", dataset_id)

    async def get_dataset_details(self, dataset_id=None):
        return self._record("get_dataset_details", dataset_id)

    async def get_datasources(self, dataset_id=None):
        return self._record("get_datasources", dataset_id)

    async def get_parameters(self, dataset_id=None):
        return self._record("get_parameters", dataset_id)

    async def get_refresh_history(self, dataset_id=None, top=None):
        return self._record("get_refresh_history", dataset_id, top)

    async def get_dataset_users(self, dataset_id=None):
        return self._record("get_dataset_users", dataset_id)

    async def aggregate(self, table, column, function, dataset_id=None):
        return self._record("aggregate", table, column, function, dataset_id)

    async def get_distinct_values(self, table, column, dataset_id=None):
        return self._record("get_distinct_values", table, column, dataset_id)

    async def ping(self) -> bool:
        return True


def test_register_tools_exposes_every_tool():
    server = DummyServer()
    tasks.register_tools(server, _FakeClient(FabricResponse.ok([], "")))

    assert set(server.tools) == EXPECTED_TOOLS


def test_register_tools_rejects_non_server():
    with pytest.raises(ValueError):
        tasks.register_tools(object(), _FakeClient(FabricResponse.ok([], "")))


def test_success_returns_formatted_text():
    server = DummyServer()
    client = _FakeClient(FabricResponse.ok(["x"], "• Sales (ID: ds-1)"))
    tasks.register_tools(server, client)

    out = _run(server.tools["list_semantic_models"]())

    assert out == "• Sales (ID: ds-1)"
    assert client.calls == [("list_datasets",)]


@pytest.mark.parametrize(
    "tool, kwargs, default",
    [
        ("query_semantic_model", {"dax_query": "EVALUATE T"}, "Query executed successfully"),
        ("list_semantic_models", {}, "No datasets found"),
        ("get_semantic_model_metadata", {}, "No metadata found"),
        ("get_dataset_details", {}, "No details found"),
        ("get_dataset_datasources", {}, "No datasources found"),
        ("get_dataset_parameters", {}, "No parameters found"),
        ("get_dataset_refresh_history", {"top": 3}, "No refresh history found"),
        ("get_dataset_users", {}, "No users found"),
        (
            "aggregate_data",
            {"table_name": "T", "column_name": "C", "aggregation_function": "SUM"},
            "Aggregation completed",
        ),
        ("get_distinct_values", {"table_name": "T", "column_name": "C"}, "No distinct values found"),
    ],
)
def test_empty_success_uses_tool_default(tool, kwargs, default):
    server = DummyServer()
    tasks.register_tools(server, _FakeClient(FabricResponse.ok([], "")))

    assert _run(server.tools[tool](**kwargs)) == default


def test_failure_is_rendered_as_error_string():
    server = DummyServer()
    client = _FakeClient(FabricResponse.fail("Failed to list datasets: HTTP 400 - Bad Request"))
    tasks.register_tools(server, client)

    out = _run(server.tools["list_semantic_models"]())

    assert out == "Error: Failed to list datasets: HTTP 400 - Bad Request"


def test_arguments_are_forwarded_to_client():
    server = DummyServer()
    client = _FakeClient(FabricResponse.ok(None, "ok"))
    tasks.register_tools(server, client)

    _run(server.tools["aggregate_data"]("Sales", "Amount", "avg", dataset_id="ds-2"))
    _run(server.tools["get_dataset_refresh_history"](dataset_id="ds-3", top=10))
    _run(server.tools["query_semantic_model"]("EVALUATE Sales"))

    assert client.calls == [
        ("aggregate", "Sales", "Amount", "avg", "ds-2"),
        ("get_refresh_history", "ds-3", 10),
        ("execute_query", "EVALUATE Sales", None),
    ]


def test_connection_status_is_redacted():
    cache = SingleSlotTokenCache()
    client = _FakeClient(FabricResponse.ok(None, ""))
    client.config = FabricConfig(
        workspace_id="ws-1",
        azure_client_id="client",
        azure_client_secret="super-secret",
        azure_tenant_id="tenant",
    )

    status = _run(tasks.connection_status(client, token_cache=cache))

    assert status["ok"] is True
    assert status["config"]["workspace_configured"] is True
    assert status["config"]["delegated_auth_configured"] is True
    assert status["token_cache"]["populated"] is False
    assert "super-secret" not in repr(status)


def test_connection_status_reports_token_failure():
    class _BrokenClient(_FakeClient):
        async def ping(self) -> bool:
            raise RuntimeError("no credential available")

    status = _run(tasks.connection_status(_BrokenClient(FabricResponse.ok(None, ""))))

    assert status["ok"] is False
    assert status["checks"][0]["error"]["code"] == "AUTH_ERROR"
    assert status["token_cache"] is None


# ---------------------------------------------------------------------------
# Server wiring
# ---------------------------------------------------------------------------


class _NullCredential:
    def get_token(self, *scopes: str):
        raise AssertionError("credential should not be used during wiring")


@pytest.fixture
def no_azure_credential(monkeypatch):
    monkeypatch.setattr(auth, "DefaultAzureCredential", lambda **kwargs: _NullCredential())


def test_create_server_registers_tools(no_azure_credential):
    mcp = create_server(FabricConfig(workspace_id="ws-1"))

    tools = _run(mcp.list_tools())

    assert {t.name for t in tools} == EXPECTED_TOOLS


def test_create_server_tolerates_incomplete_configuration(no_azure_credential):
    mcp = create_server(FabricConfig(workspace_id=None))
    assert mcp is not None


def test_http_app_is_wrapped_with_header_middleware(no_azure_credential):
    app = http_server.build_app(FabricConfig(workspace_id="ws-1"))
    assert isinstance(app, AuthorizationHeaderMiddleware)
