import asyncio
import json
import threading

import httpx
import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from trainai_mcp.config import Settings
from trainai_mcp import mcp_server
from trainai_mcp.mcp_server import create_app
from trainai_mcp.upstream import UpstreamClient

FLOWS = [{"id": "f-1"}]


def _upstream(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/flows/nan":
        return httpx.Response(200, text='{"score": NaN}')
    if request.url.path == "/flows":
        return httpx.Response(200, json=FLOWS)
    if request.url.path == "/doc_search":
        return httpx.Response(200, json={"routes": ["/a", "/b"]})
    return httpx.Response(500, text="boom")


upstream = UpstreamClient("https://api.test", transport=httpx.MockTransport(_upstream))
app = create_app(Settings(api_base="https://api.test", log_file=None), client=upstream)
client = TestClient(app)


def _call(name, arguments=None, mid=1):
    return {"jsonrpc": "2.0", "id": mid, "method": "tools/call", "params": {"name": name, "arguments": arguments or {}}}


def test_health_endpoint():
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "trainai-mcp-server up"


def test_manifest_lists_tools():
    data = client.get("/.well-known/mcp.json").json()
    assert data["name"] == "trainai-tools"
    assert {t["name"] for t in data["tools"]} >= {"crawl", "doc_search", "evaluate", "persist_flow"}
    assert {t["type"] for t in data["transports"]} == {"streamable-http", "sse", "websocket"}


def test_tools_list_over_http():
    response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    assert response.status_code == 200
    assert len(response.json()["result"]["tools"]) == 6


def test_tools_call_over_http():
    response = client.post("/mcp", json=_call("doc_search", {"query": "login"}))
    result = response.json()["result"]
    assert result["isError"] is False
    assert result["structuredContent"] == {"routes": ["/a", "/b"]}


def test_upstream_failure_is_still_http_200():
    response = client.post("/mcp", json=_call("persist_flow", {"flow": {"a": 1}}))
    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"] == "persist_flow failed: 500 boom"


def test_array_body_has_no_structured_content():
    result = client.post("/mcp", json=_call("list_flows")).json()["result"]
    assert "structuredContent" not in result
    assert json.loads(result["content"][0]["text"]) == FLOWS


def test_notification_gets_202():
    response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert response.status_code == 202
    assert response.content == b""


def test_invalid_json_gets_400():
    response = client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700


def test_sse_only_client_gets_one_event():
    response = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 9, "method": "ping"},
        headers={"accept": "text/event-stream"},
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    data_line = next(line for line in response.text.splitlines() if line.startswith("data: "))
    assert json.loads(data_line[len("data: "):]) == {"jsonrpc": "2.0", "id": 9, "result": {}}


def test_get_mcp_status_and_sse_refusal():
    data = client.get("/mcp").json()
    assert data["status"] == "ok"
    assert "get_flow" in data["tools"]
    assert client.get("/mcp", headers={"accept": "text/event-stream"}).status_code == 405


def test_options_probe():
    response = client.options("/mcp")
    assert response.status_code == 200
    assert "POST" in response.headers["allow"]


def test_messages_for_unknown_session():
    response = client.post("/messages?session_id=nope", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert response.status_code == 404


def test_tools_list_via_websocket():
    with client.websocket_connect("/mcp-ws") as ws:
        ws.send_json({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
        data = ws.receive_json()
        assert data["id"] == 1
        assert {t["name"] for t in data["result"]["tools"]} == {
            "crawl", "doc_search", "evaluate", "persist_flow", "list_flows", "get_flow",
        }


def test_tools_call_unknown_tool_via_websocket():
    with client.websocket_connect("/mcp-ws") as ws:
        ws.send_text("{broken")
        assert ws.receive_json()["error"]["code"] == -32700
        # notifications produce no frame; the next reply belongs to id 2
        ws.send_json({"jsonrpc": "2.0", "method": "notifications/initialized"})
        ws.send_json(_call("unknown.tool", mid=2))
        data = ws.receive_json()
        assert data["id"] == 2
        assert data["result"]["isError"] is True
        assert "unknown tool" in data["result"]["content"][0]["text"]


def test_non_standard_json_body_is_a_tool_error_not_a_500():
    response = client.post("/mcp", json=_call("get_flow", {"id": "nan"}))
    assert response.status_code == 200
    result = response.json()["result"]
    assert result["isError"] is True
    assert result["content"][0]["text"].startswith("get_flow failed: 200 invalid JSON body")


# --- cancellation when the caller goes away ---------------------------------
class SlowUpstream:
    """MockTransport handler that never answers in time and records cancellation."""

    def __init__(self):
        self.started = threading.Event()
        self.cancelled = threading.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise
        return httpx.Response(200, json={})


def _slow_app(slow: SlowUpstream):
    upstream_client = UpstreamClient("https://api.test", transport=httpx.MockTransport(slow))
    return create_app(Settings(api_base="https://api.test", log_file=None), client=upstream_client)


def _gone_request(app, path: str, payload: dict) -> Request:
    """A request whose body arrives and whose client then disconnects."""
    body = json.dumps(payload).encode()
    delivered = False

    async def receive():
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    scope = {
        "type": "http",
        "method": "POST",
        "path": path,
        "headers": [(b"content-type", b"application/json")],
        "query_string": b"",
        "app": app,
    }
    return Request(scope, receive)


async def _wait_for(event: threading.Event, seconds: float = 2.0) -> bool:
    for _ in range(int(seconds / 0.01)):
        if event.is_set():
            return True
        await asyncio.sleep(0.01)
    return event.is_set()


@pytest.mark.asyncio
async def test_http_disconnect_cancels_upstream_call(monkeypatch):
    monkeypatch.setattr(mcp_server, "DISCONNECT_POLL_SECONDS", 0.01)
    slow = SlowUpstream()
    app = _slow_app(slow)

    response = await mcp_server.mcp_http(_gone_request(app, "/mcp", _call("list_flows")))

    assert response.status_code == 499
    assert slow.started.is_set()
    assert await _wait_for(slow.cancelled)


@pytest.mark.asyncio
async def test_sse_message_disconnect_cancels_upstream_call(monkeypatch):
    monkeypatch.setattr(mcp_server, "DISCONNECT_POLL_SECONDS", 0.01)
    slow = SlowUpstream()
    app = _slow_app(slow)
    q: asyncio.Queue = asyncio.Queue()
    app.state.sse_sessions["s1"] = q

    response = await mcp_server.sse_post(_gone_request(app, "/messages", _call("list_flows")), "s1")

    assert response.status_code == 499
    assert await _wait_for(slow.cancelled)
    assert q.empty()


def test_websocket_calls_run_concurrently_and_are_cancelled_on_close():
    slow = SlowUpstream()
    with TestClient(_slow_app(slow)).websocket_connect("/mcp-ws") as ws:
        ws.send_json(_call("list_flows", mid=1))
        assert slow.started.wait(2)
        # the pending call does not hold up later messages on the same socket
        ws.send_json({"jsonrpc": "2.0", "id": 2, "method": "ping"})
        assert ws.receive_json() == {"jsonrpc": "2.0", "id": 2, "result": {}}
    assert slow.cancelled.wait(2)
