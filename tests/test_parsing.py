# Fabric Semantic Model MCP Server
# File: tests/test_parsing.py
# Version: v1

"""Tests for REST payload parsing and text formatting."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from fabric_semantic_mcp import formatting, parsing
from fabric_semantic_mcp.models import QueryResult


def _query_payload(*tables):
    return json.dumps({"results": [{"tables": list(tables)}]})


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected, expected_type",
    [
        ("100", 100, int),
        ("100.0", 100, int),
        ("-7", -7, int),
        ("1.5", 1.5, float),
        ("9223372036854775807", 9223372036854775807, int),
        ("9223372036854775808", 9223372036854775808.0, float),
        ('"text"', "text", str),
        ("true", True, bool),
        ("false", False, bool),
    ],
)
def test_coerce_cell_scalars(raw, expected, expected_type):
    value = parsing.coerce_cell(json.loads(raw))
    assert value == expected
    assert type(value) is expected_type


def test_coerce_cell_null_and_nested_values():
    assert parsing.coerce_cell(None) is None
    assert parsing.coerce_cell({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'
    assert parsing.coerce_cell([1, "x", None]) == '[1,"x",null]'


# ---------------------------------------------------------------------------
# executeQueries responses
# ---------------------------------------------------------------------------


def test_object_rows_keep_first_seen_column_order():
    body = _query_payload(
        {
            "columns": [{"name": "Total"}, {"name": "Category"}],
            "rows": [
                {"Category": "A", "Total": 100},
                {"Total": 200, "Region": "West", "Category": "B"},
            ],
        }
    )

    result = parsing.parse_query_result(body)

    assert result.columns == ["Total", "Category", "Region"]
    assert result.rows == [
        {"Category": "A", "Total": 100},
        {"Total": 200, "Region": "West", "Category": "B"},
    ]


def test_object_rows_without_column_list_define_columns():
    body = _query_payload({"rows": [{"b": 1, "a": 2}, {"c": None}]})

    result = parsing.parse_query_result(body)

    assert result.columns == ["b", "a", "c"]
    assert result.rows[1] == {"c": None}


def test_array_rows_synthesize_missing_column_names():
    body = _query_payload(
        {
            "columns": [{"name": "Name"}],
            "rows": [["a", 1, 2.5], ["b"], ["c", 3, 4, {"k": True}]],
        }
    )

    result = parsing.parse_query_result(body)

    assert result.columns == ["Name", "Column2", "Column3", "Column4"]
    assert result.rows == [
        {"Name": "a", "Column2": 1, "Column3": 2.5},
        {"Name": "b"},
        {"Name": "c", "Column2": 3, "Column3": 4, "Column4": '{"k":true}'},
    ]


def test_synthesized_names_do_not_collide_with_real_columns():
    body = _query_payload({"columns": [{"name": "Column2"}], "rows": [[1, 2]]})

    result = parsing.parse_query_result(body)

    assert result.columns == ["Column2", "Column2_2"]
    assert result.rows == [{"Column2": 1, "Column2_2": 2}]


def test_unnamed_declared_column_keeps_its_position():
    body = _query_payload({"columns": [{}, {"name": "B"}, "junk"], "rows": [[1, 2, 3]]})

    result = parsing.parse_query_result(body)

    assert result.columns == ["Column1", "B", "Column3"]
    assert result.rows == [{"Column1": 1, "B": 2, "Column3": 3}]


def test_duplicate_declared_column_gets_its_own_slot():
    body = _query_payload(
        {"columns": [{"name": "A"}, {"name": "A"}, {"name": "B"}], "rows": [[1, 2, 3]]}
    )

    result = parsing.parse_query_result(body)

    assert result.columns == ["A", "Column2", "B"]
    assert result.rows == [{"A": 1, "Column2": 2, "B": 3}]


def test_array_rows_map_through_their_own_table_columns():
    body = _query_payload(
        {"columns": [{"name": "A"}, {"name": "B"}], "rows": [[1, 2]]},
        {"columns": [{"name": "C"}], "rows": [[3, 4]]},
    )

    result = parsing.parse_query_result(body)

    assert result.columns == ["A", "B", "C", "Column2"]
    assert result.rows == [{"A": 1, "B": 2}, {"C": 3, "Column2": 4}]


def test_multiple_results_and_tables_are_accumulated():
    body = json.dumps(
        {
            "results": [
                {"tables": [{"rows": [{"A": 1}]}, {"rows": [{"B": 2}]}]},
                {"tables": [{"rows": [{"A": 3}]}]},
            ]
        }
    )

    result = parsing.parse_query_result(body)

    assert result.columns == ["A", "B"]
    assert result.rows == [{"A": 1}, {"B": 2}, {"A": 3}]


@pytest.mark.parametrize("body", ["", "not json", "{", "[1, 2]", '{"results": "oops"}', "null"])
def test_malformed_query_body_yields_empty_result(body, caplog):
    with caplog.at_level(logging.WARNING, logger="fabric_semantic_mcp.parsing"):
        result = parsing.parse_query_result(body)

    assert result == QueryResult()


def test_unparseable_json_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="fabric_semantic_mcp.parsing"):
        parsing.parse_query_result("{bad")

    assert any("Could not parse" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Typed records
# ---------------------------------------------------------------------------


def test_parse_table_metadata():
    body = json.dumps(
        {
            "value": [
                {
                    "name": "Sales",
                    "columns": [
                        {"name": "Amount", "dataType": "Double"},
                        {"name": "Region", "displayName": "Sales Region", "dataType": "String"},
                    ],
                }
            ]
        }
    )

    tables = parsing.parse_table_metadata(body)

    assert len(tables) == 1
    assert tables[0].name == "Sales"
    assert [c.data_type for c in tables[0].columns] == ["Double", "String"]
    assert formatting.format_table_metadata(tables) == (
        "Table: Sales\n  - Amount (Double)\n  - Sales Region (String)"
    )


def test_parse_datasets_skips_non_objects():
    body = json.dumps({"value": [{"id": "ds-1", "name": "Sales"}, "junk", {"id": "ds-2"}]})

    datasets = parsing.parse_datasets(body)

    assert [d.id for d in datasets] == ["ds-1", "ds-2"]
    assert formatting.format_datasets(datasets) == "• Sales (ID: ds-1)\n• None (ID: ds-2)"


def test_parse_dataset_details_single_object():
    body = json.dumps(
        {
            "id": "ds-1",
            "name": "Sales",
            "configuredBy": "owner@contoso.com",
            "isRefreshable": True,
            "targetStorageMode": "Abf",
            "createdDate": "2024-03-01T10:15:00Z",
            "queryScaleOutSettings": {
                "autoSyncReadOnlyReplicas": True,
                "maxReadOnlyReplicas": -1,
            },
        }
    )

    ds = parsing.parse_dataset_details(body)

    assert ds.configured_by == "owner@contoso.com"
    assert ds.is_refreshable is True
    assert ds.created_date == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)
    assert ds.query_scale_out_settings.max_read_only_replicas == -1

    text = formatting.format_dataset_details(ds)
    assert text.startswith("Dataset: Sales")
    assert "Configured by: owner@contoso.com" in text
    assert "Refreshable: Yes" in text
    assert "Max read-only replicas: -1" in text


def test_parse_dataset_details_malformed_body():
    ds = parsing.parse_dataset_details("<html>")
    assert ds.id is None and ds.name is None


def test_parse_datasources_with_connection_details():
    body = json.dumps(
        {
            "value": [
                {
                    "datasourceType": "Sql",
                    "datasourceId": "src-1",
                    "gatewayId": "gw-1",
                    "connectionDetails": {"server": "sql.contoso.com", "database": "Sales"},
                }
            ]
        }
    )

    sources = parsing.parse_datasources(body)

    assert sources[0].connection_details == {"server": "sql.contoso.com", "database": "Sales"}
    text = formatting.format_datasources(sources)
    assert text.splitlines()[0] == "• Sql (ID: src-1)"
    assert "server: sql.contoso.com" in text


def test_parse_parameters():
    body = json.dumps(
        {
            "value": [
                {
                    "name": "Env",
                    "type": "Text",
                    "isRequired": True,
                    "currentValue": "prod",
                    "suggestedValues": ["dev", "prod"],
                }
            ]
        }
    )

    params = parsing.parse_parameters(body)

    assert params[0].is_required is True
    assert params[0].suggested_values == ["dev", "prod"]
    assert formatting.format_parameters(params) == (
        "• Env (Text) = prod [required]\n    Suggested: dev, prod"
    )


def test_parse_refresh_history_with_attempts():
    body = json.dumps(
        {
            "value": [
                {
                    "refreshType": "Scheduled",
                    "status": "Failed",
                    "startTime": "2024-03-01T10:00:00Z",
                    "endTime": "not a date",
                    "serviceExceptionJson": '{"errorCode":"ModelRefreshFailed"}',
                    "refreshAttempts": [
                        {"attemptId": 1, "type": "Data", "startTime": "2024-03-01T10:00:00Z"},
                        {"attemptId": "2", "type": "Query"},
                    ],
                }
            ]
        }
    )

    refreshes = parsing.parse_refresh_history(body)

    refresh = refreshes[0]
    assert refresh.end_time is None
    assert [a.attempt_id for a in refresh.attempts] == [1, 2]

    text = formatting.format_refresh_history(refreshes)
    assert "Failed (Scheduled)" in text
    assert "Attempt 1 [Data]" in text
    assert "Attempt 2 [Query]" in text
    assert "ModelRefreshFailed" in text


def test_parse_dataset_users():
    body = json.dumps(
        {
            "value": [
                {
                    "identifier": "user@contoso.com",
                    "principalType": "User",
                    "datasetUserAccessRight": "ReadWriteReshareExplore",
                }
            ]
        }
    )

    users = parsing.parse_dataset_users(body)

    assert users[0].access_right == "ReadWriteReshareExplore"
    assert formatting.format_dataset_users(users) == (
        "• user@contoso.com (User): ReadWriteReshareExplore"
    )


@pytest.mark.parametrize(
    "parser",
    [
        parsing.parse_table_metadata,
        parsing.parse_datasets,
        parsing.parse_datasources,
        parsing.parse_parameters,
        parsing.parse_refresh_history,
        parsing.parse_dataset_users,
    ],
)
def test_list_parsers_tolerate_malformed_json(parser):
    assert parser("{oops") == []
    assert parser(json.dumps({"value": None})) == []


# ---------------------------------------------------------------------------
# Query / value formatting
# ---------------------------------------------------------------------------


def test_format_query_result_blanks_missing_and_null_cells():
    result = QueryResult(columns=["A", "B"], rows=[{"A": 1}, {"A": None, "B": True}])

    assert formatting.format_query_result(result) == "A | B\n1 | \n | True"


def test_format_query_result_without_rows():
    assert formatting.format_query_result(QueryResult(columns=["A"])) == "No results"


def test_format_distinct_values_uses_null_marker():
    text = formatting.format_distinct_values("Product", "Color", ["Red", None, 3])
    assert text == "Product.Color: Red, NULL, 3"
