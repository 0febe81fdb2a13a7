import json

import pytest

from trainai_mcp.smoke import send_and_wait


class FakeSocket:
    def __init__(self, frames):
        self.frames = list(frames)
        self.sent = []

    async def send(self, text):
        self.sent.append(json.loads(text))

    async def recv(self):
        return self.frames.pop(0)


@pytest.mark.asyncio
async def test_send_and_wait_skips_unrelated_frames(capsys):
    ws = FakeSocket(["not json", json.dumps({"id": 99}), json.dumps({"id": 2, "result": {"tools": []}})])
    reply = await send_and_wait(ws, {"id": 2, "method": "tools/list"}, expect_id=2)
    assert reply == {"id": 2, "result": {"tools": []}}
    assert ws.sent == [{"id": 2, "method": "tools/list"}]
    assert "not json" in capsys.readouterr().out
