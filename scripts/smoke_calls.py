"""Drive the adapter over stdio and print tool results.

Examples:
    python scripts/smoke_calls.py --list
    python scripts/smoke_calls.py --run-all
    python scripts/smoke_calls.py --call getUsers --args '{"api_token": "..."}'
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

from fastmcp import Client
from fastmcp.client.transports import StdioTransport

TOKEN_PLACEHOLDER = "YOUR_API_TOKEN_HERE"

# (tool name, arguments) pairs mirroring the common ScanPower flows.
PREDEFINED_CALLS: List[Tuple[str, Dict[str, Any]]] = [
    ("getUsers", {"api_token": TOKEN_PLACEHOLDER}),
    ("getProxyUsers", {"proxy": "proxy", "api_token": TOKEN_PLACEHOLDER}),
    ("getAccessToken", {"marketplace": "ATVPDKIKX0DER", "api_token": TOKEN_PLACEHOLDER}),
    (
        "searchCatalogItems",
        {
            "keywords": "laptop",
            "marketplaceIds": ["ATVPDKIKX0DER"],
            "pageSize": 10,
            "api_token": TOKEN_PLACEHOLDER,
        },
    ),
    (
        "listInboundPlans",
        {
            "pageSize": 10,
            "status": "ACTIVE",
            "sortBy": "LAST_UPDATED_TIME",
            "sortOrder": "DESC",
            "api_token": TOKEN_PLACEHOLDER,
        },
    ),
]


def _inject_token(value: Any, token: str) -> Any:
    if isinstance(value, dict):
        return {
            key: token if key == "api_token" else _inject_token(item, token)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_inject_token(item, token) for item in value]
    if value == TOKEN_PLACEHOLDER:
        return token
    return value


def _print_result(name: str, result: Any) -> None:
    print(f"\n== {name} (isError={result.isError})")
    for block in result.content:
        print(getattr(block, "text", block))
    if result.structuredContent:
        print(json.dumps(result.structuredContent, indent=2))


async def _fetch_token(client: Client) -> Optional[str]:
    result = await client.call_tool_mcp("getApiToken", {})
    if result.isError or not result.content:
        print("No API token obtained. Calls will use placeholders.", file=sys.stderr)
        return None
    try:
        parsed = json.loads(getattr(result.content[0], "text", ""))
    except ValueError:
        return None
    if isinstance(parsed, dict):
        parsed = parsed.get("token")
    return str(parsed) if parsed else None


async def _run(args: argparse.Namespace) -> None:
    transport = StdioTransport(
        command=sys.executable,
        args=["-m", "scanpower_adapter.main"],
        env={**os.environ, "ADAPTER_TRANSPORT": "stdio"},
    )
    async with Client(transport) as client:
        if args.list:
            for tool in await client.list_tools():
                print(f"{tool.name}: {tool.description}")

        calls: List[Tuple[str, Dict[str, Any]]] = []
        if args.call:
            calls.append((args.call, json.loads(args.args)))
        if args.run_all:
            calls.extend(PREDEFINED_CALLS)
        if not calls:
            return

        token = args.token or (await _fetch_token(client) if not args.no_token else None)
        for name, arguments in calls:
            if token:
                arguments = _inject_token(arguments, token)
            _print_result(name, await client.call_tool_mcp(name, arguments))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--list", action="store_true", help="List tools")
    parser.add_argument("--run-all", action="store_true", help="Run the predefined calls")
    parser.add_argument("--call", help="Tool name to call")
    parser.add_argument("--args", default="{}", help="JSON arguments for --call")
    parser.add_argument("--token", help="API token to inject instead of calling getApiToken")
    parser.add_argument("--no-token", action="store_true", help="Do not fetch an API token")
    asyncio.run(_run(parser.parse_args()))


if __name__ == "__main__":
    main()
