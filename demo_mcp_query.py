# demo_mcp_query.py
# Version: v1
#
# Demo: run a DAX query, an aggregation and a distinct-values lookup against
# a semantic model via the MCP-style tasks.
#
# Usage (PowerShell):
#
#   $env:FABRIC_WORKSPACE_ID = "<workspace guid>"
#   $env:FABRIC_DEFAULT_DATASET_ID = "<dataset guid>"
#   python demo_mcp_query.py Sales Amount Region

import asyncio
import sys

from dotenv import load_dotenv

from fabric_semantic_mcp.auth import CachingTokenProvider
from fabric_semantic_mcp.client import FabricSemanticModelClient
from fabric_semantic_mcp.config import FabricConfig
from fabric_semantic_mcp.tools import tasks


async def main(table: str, measure_column: str, group_column: str) -> None:
    load_dotenv()
    cfg = FabricConfig.from_env()
    client = FabricSemanticModelClient(
        config=cfg, token_provider=CachingTokenProvider.from_config(cfg)
    )

    query = f"EVALUATE TOPN(5, '{table}')"
    print(f"Calling MCP task: query_semantic_model({query!r})")
    print(await tasks.query_semantic_model(client, dax_query=query))
    print()

    for func in ("SUM", "AVG", "COUNT"):
        print(await tasks.aggregate_data(client, table, measure_column, func))
    print()

    print(await tasks.get_distinct_values(client, table, group_column))


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print("usage: python demo_mcp_query.py <table> <measure column> <group column>")
        sys.exit(2)
    asyncio.run(main(*sys.argv[1:4]))
