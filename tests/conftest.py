import os

# keep the module-level app from opening a log file during tests
os.environ.setdefault("LOG_FILE", "")

import httpx
import pytest

from trainai_mcp.upstream import UpstreamClient, UpstreamSuccess

API_BASE = "https://api.test"


class RecordingHandler:
    """httpx.MockTransport handler that remembers every request it served."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


class StubClient:
    """Stands in for UpstreamClient: returns a fixed outcome and counts calls."""

    def __init__(self, outcome=None):
        self.outcome = outcome or UpstreamSuccess(status_code=200, body={"ok": True})
        self.requests = []

    async def send(self, request):
        self.requests.append(request)
        return self.outcome


@pytest.fixture
def mock_upstream():
    """Return a factory building an UpstreamClient wired to a recording MockTransport."""

    def factory(respond):
        handler = RecordingHandler(respond)
        client = UpstreamClient(API_BASE, transport=httpx.MockTransport(handler))
        return client, handler

    return factory


@pytest.fixture
def stub_client():
    """Return a factory for StubClient; defaults to a 200 with {"ok": true}."""
    return StubClient
