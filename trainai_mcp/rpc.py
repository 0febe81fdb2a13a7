"""JSON-RPC message handling shared by the HTTP, SSE and WebSocket routes."""

import logging
from typing import Any

from .gateway import DispatchGateway, ToolInvocation

logger = logging.getLogger(__name__)

SERVER_NAME = "trainai-tools"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")
LATEST_PROTOCOL_VERSION = PROTOCOL_VERSIONS[-1]

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def error_response(mid: Any, code: int, message: str, data: Any = None) -> dict:
    err: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": mid, "error": err}


def _result(mid: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": mid, "result": result}


def is_notification(message: Any) -> bool:
    return isinstance(message, dict) and "method" in message and "id" not in message


async def process_rpc(gateway: DispatchGateway, req: Any) -> dict | None:
    """Process one parsed JSON-RPC message.

    Returns the response mapping, or None when ``req`` is a notification.
    """
    if not isinstance(req, dict) or not isinstance(req.get("method"), str):
        mid = req.get("id") if isinstance(req, dict) else None
        return error_response(mid, INVALID_REQUEST, "invalid request")

    mid = req.get("id")
    method = req["method"]
    params = req.get("params") or {}
    logger.debug("RPC incoming: method=%s id=%s", method, mid)

    if is_notification(req):
        logger.debug("RPC notification %s", method)
        return None

    if not isinstance(params, dict):
        return error_response(mid, INVALID_PARAMS, "params must be an object")

    try:
        if method == "initialize":
            requested = params.get("protocolVersion")
            version = requested if requested in PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
            return _result(
                mid,
                {
                    "protocolVersion": version,
                    "capabilities": {"tools": {"listChanged": False}},
                    "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
                },
            )

        if method == "ping":
            return _result(mid, {})

        if method == "tools/list":
            return _result(mid, {"tools": gateway.list_tools()})

        if method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                return error_response(mid, INVALID_PARAMS, "tools/call requires a string 'name'")
            invocation = ToolInvocation(tool_name=name, arguments=params.get("arguments"))
            result = await gateway.dispatch(invocation)
            return _result(mid, result.to_mcp())

        return error_response(
            mid,
            METHOD_NOT_FOUND,
            f"unknown method: {method}",
            {"available": gateway.registry.names()},
        )
    except Exception as e:
        logger.exception("RPC handler exception")
        return error_response(mid, INTERNAL_ERROR, str(e))
