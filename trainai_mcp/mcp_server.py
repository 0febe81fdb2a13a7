#!/usr/bin/env python3

"""MCP server exposing the Train.ai REST API as tools.

Transports:
  POST /mcp           streamable HTTP (one JSON-RPC message in, one reply out)
  GET  /sse           legacy SSE stream, paired with POST /messages?session_id=...
  WS   /mcp-ws        JSON-RPC over a WebSocket

Run with:
  uvicorn trainai_mcp.mcp_server:app --host 0.0.0.0 --port 3000
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from .config import Settings
from .gateway import DispatchGateway
from .logging_middleware import setup_logging
from .rpc import PARSE_ERROR, SERVER_NAME, SERVER_VERSION, error_response, process_rpc
from .tools.trainai import build_registry
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

# how often a pending HTTP call checks whether its client went away
DISCONNECT_POLL_SECONDS = 0.5
SSE_KEEPALIVE_SECONDS = 15.0

_DISCONNECTED = object()

router = APIRouter()


def _gateway(conn: Request | WebSocket) -> DispatchGateway:
    return conn.app.state.gateway


def _wants_sse_only(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/event-stream" in accept and "application/json" not in accept


async def _run_until_disconnect(request: Request, coro):
    """Await ``coro``, cancelling it if the HTTP client disconnects first."""
    task = asyncio.ensure_future(coro)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("client disconnected, cancelling %s call", request.url.path)
                return _DISCONNECTED
    finally:
        if not task.done():
            task.cancel()


@router.get("/", response_class=PlainTextResponse)
def health() -> str:
    """Simple health check endpoint."""
    return "trainai-mcp-server up"


@router.get("/.well-known/mcp.json")
def manifest(request: Request):
    """Static discovery manifest: server identity, transports and tool catalog."""
    settings: Settings = request.app.state.settings
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "description": f"MCP bridge to the Train.ai API at {settings.api_base}",
        "transports": [
            {"type": "streamable-http", "url": "/mcp"},
            {"type": "sse", "url": "/sse"},
            {"type": "websocket", "url": "/mcp-ws"},
        ],
        "tools": _gateway(request).list_tools(),
    }


# --- streamable HTTP --------------------------------------------------------
@router.post("/mcp")
async def mcp_http(request: Request):
    """
    Accept one JSON-RPC message and return its reply as JSON, or as a single
    SSE event when the client only accepts ``text/event-stream``.
    Notifications get an empty 202.
    """
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(error_response(None, PARSE_ERROR, "invalid json"), status_code=400)

    resp = await _run_until_disconnect(request, process_rpc(_gateway(request), payload))
    if resp is _DISCONNECTED:
        return Response(status_code=499)
    if resp is None:
        return Response(status_code=202)
    if _wants_sse_only(request):
        text = json.dumps(resp)

        async def one_event():
            yield f"event: message\ndata: {text}\n\n"

        return StreamingResponse(one_event(), media_type="text/event-stream")
    return JSONResponse(resp)


@router.get("/mcp")
async def mcp_http_get(request: Request):
    """Lightweight status; this server never pushes unsolicited messages, so no SSE here."""
    if "text/event-stream" in request.headers.get("accept", ""):
        return Response(status_code=405, headers={"Allow": "POST, OPTIONS"})
    return JSONResponse({"status": "ok", "tools": _gateway(request).registry.names()})


@router.options("/mcp")
async def mcp_http_options():
    """
    Respond to preflight / probe OPTIONS requests.
    """
    return Response(status_code=200, headers={"Allow": "POST, GET, OPTIONS"})


# --- legacy SSE transport ---------------------------------------------------
@router.get("/sse")
async def sse_subscribe(request: Request):
    """
    Open an event stream. The first event names the endpoint the client must
    POST its messages to; replies to those messages arrive on this stream.
    """
    sessions: dict[str, asyncio.Queue] = request.app.state.sse_sessions
    session_id = uuid.uuid4().hex
    q: "asyncio.Queue[str]" = asyncio.Queue()
    sessions[session_id] = q
    logger.info("SSE session %s opened", session_id)

    async def event_stream():
        try:
            yield f"event: endpoint\ndata: /messages?session_id={session_id}\n\n"
            while True:
                try:
                    data = await asyncio.wait_for(q.get(), timeout=SSE_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    if await request.is_disconnected():
                        break
                    yield ": keepalive\n\n"
                    continue
                yield f"event: message\ndata: {data}\n\n"
        finally:
            sessions.pop(session_id, None)
            logger.info("SSE session %s closed", session_id)

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/messages")
async def sse_post(request: Request, session_id: str):
    """Accept a JSON-RPC message for an open SSE session; the reply goes to its stream."""
    q = request.app.state.sse_sessions.get(session_id)
    if q is None:
        return JSONResponse({"error": "unknown session"}, status_code=404)
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(error_response(None, PARSE_ERROR, "invalid json"), status_code=400)

    resp = await _run_until_disconnect(request, process_rpc(_gateway(request), payload))
    if resp is _DISCONNECTED:
        return Response(status_code=499)
    # the stream may have closed while the call was running
    if resp is not None and session_id in request.app.state.sse_sessions:
        q.put_nowait(json.dumps(resp))
    return Response(status_code=202)


# --- WebSocket transport ----------------------------------------------------
def _forget(pending: set, task: asyncio.Task) -> None:
    pending.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.warning("WS call failed: %s", task.exception())


@router.websocket("/mcp-ws")
async def mcp_socket(ws: WebSocket) -> None:
    """
    WebSocket endpoint carrying one JSON-RPC message per text frame.
    Each message runs as its own task, so replies may arrive out of order;
    calls still pending when the socket closes are cancelled.
    """
    await ws.accept(subprotocol="mcp" if "mcp" in ws.scope.get("subprotocols", []) else None)
    gateway = _gateway(ws)
    send_lock = asyncio.Lock()
    pending: set[asyncio.Task] = set()

    async def send(resp: dict) -> None:
        async with send_lock:
            await ws.send_text(json.dumps(resp))

    async def handle(req) -> None:
        resp = await process_rpc(gateway, req)
        if resp is not None:
            await send(resp)

    try:
        while True:
            try:
                msg = await ws.receive_text()
            except WebSocketDisconnect:
                break
            logger.debug("WS raw message: %s", msg)
            try:
                req = json.loads(msg)
            except ValueError as e:
                logger.error("WS invalid JSON: %s", e)
                await send(error_response(None, PARSE_ERROR, "invalid json"))
                continue

            task = asyncio.ensure_future(handle(req))
            pending.add(task)
            task.add_done_callback(lambda t: _forget(pending, t))
    finally:
        if pending:
            logger.info("WS closed, cancelling %d pending call(s)", len(pending))
        for task in list(pending):
            task.cancel()


def create_app(settings: Settings | None = None, client: UpstreamClient | None = None) -> FastAPI:
    """Build the app. An injected ``client`` is left open on shutdown."""
    settings = settings or Settings.from_env()
    owns_client = client is None
    if client is None:
        client = UpstreamClient(settings.api_base, timeout=settings.timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("MCP HTTP server starting (API_BASE=%s)", settings.api_base)
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(title="trainai-mcp-server", version=SERVER_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = DispatchGateway(build_registry(), client)
    app.state.sse_sessions = {}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_logging(app, settings.log_level, settings.log_file)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run("trainai_mcp.mcp_server:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
