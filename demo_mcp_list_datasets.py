# demo_mcp_list_datasets.py
# Version: v1
#
# Demo: call the MCP-style list_semantic_models task directly and print results.
#
# Usage (PowerShell):
#
#   $env:FABRIC_WORKSPACE_ID = "<workspace guid>"
#   az login
#   python demo_mcp_list_datasets.py

import asyncio

from dotenv import load_dotenv

from fabric_semantic_mcp.auth import CachingTokenProvider
from fabric_semantic_mcp.client import FabricSemanticModelClient
from fabric_semantic_mcp.config import FabricConfig
from fabric_semantic_mcp.tools import tasks


async def main() -> None:
    load_dotenv()
    cfg = FabricConfig.from_env()
    client = FabricSemanticModelClient(
        config=cfg, token_provider=CachingTokenProvider.from_config(cfg)
    )

    print("Calling MCP task: list_semantic_models()")
    print(await tasks.list_semantic_models(client))

    print()
    print("Calling MCP task: get_connection_status()")
    status = await tasks.connection_status(client)
    print(f"ok={status['ok']}  config={status['config']}")


if __name__ == "__main__":
    asyncio.run(main())
