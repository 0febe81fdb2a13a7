"""Manual smoke check against a running server's WebSocket transport.

Usage:
  python -m trainai_mcp.smoke                       # initialize + tools/list
  python -m trainai_mcp.smoke doc_search '{"query": "login"}'
"""

import asyncio
import json
import os
import sys

import websockets


WS_URL = os.environ.get("MCP_WS_URL", "ws://127.0.0.1:3000/mcp-ws")


async def send_and_wait(ws, msg, expect_id, timeout=15):
    await ws.send(json.dumps(msg))
    # Read until we see the matching id (tolerate any log/notify frames)
    while True:
        resp_txt = await asyncio.wait_for(ws.recv(), timeout=timeout)
        print(resp_txt)
        try:
            obj = json.loads(resp_txt)
        except ValueError:
            continue
        if isinstance(obj, dict) and obj.get("id") == expect_id:
            return obj


async def run(url: str, tool: str | None = None, arguments: dict | None = None) -> dict | None:
    """Run the smoke sequence and return the tools/call reply, if a tool was given."""
    async with websockets.connect(url, max_size=8 * 1024 * 1024) as ws:
        await send_and_wait(
            ws,
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "initialize",
                "params": {"protocolVersion": "2025-06-18", "capabilities": {}},
            },
            expect_id=1,
        )
        await ws.send(json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}))
        await send_and_wait(ws, {"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, expect_id=2)
        if tool is None:
            return None
        # upstream crawls can be slow
        return await send_and_wait(
            ws,
            {
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": tool, "arguments": arguments or {}},
            },
            expect_id=3,
            timeout=120,
        )


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    tool = argv[0] if argv else None
    arguments = json.loads(argv[1]) if len(argv) > 1 else {}
    reply = asyncio.run(run(WS_URL, tool, arguments))
    if reply and reply.get("result", {}).get("isError"):
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted by user", file=sys.stderr)
        sys.exit(130)
