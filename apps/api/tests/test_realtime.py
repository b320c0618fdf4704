import asyncio
import json

import httpx
import pytest
import websockets
from fastapi.testclient import TestClient

from demohub.client import transport
from demohub.client.transport import RealtimeClient, decode_frame
from demohub.errors import ProviderError
from demohub.main import create_app
from demohub.services.broadcaster import InProcessBroadcaster
from demohub.services.tavus_client import TavusClient


def test_decode_frame():
    message = decode_frame(
        {"type": "broadcast", "topic": "demo-d1", "event": "play_video", "payload": {"url": "u"}},
        "d1",
    )
    assert (message.event, message.payload) == ("play_video", {"url": "u"})


@pytest.mark.parametrize(
    "frame",
    [
        {"type": "system.ping"},
        {"type": "broadcast", "event": "reboot"},
        ["broadcast"],
        None,
    ],
)
def test_decode_frame_drops_non_broadcasts(frame):
    assert decode_frame(frame, "d1") is None


def test_realtime_client_url():
    client = RealtimeClient("ws://localhost:8000/")
    assert client.url_for("d1") == "ws://localhost:8000/ws/demo/d1"


def test_websocket_subscriber_gets_heartbeat_and_is_released():
    app = create_app()
    hub = InProcessBroadcaster(heartbeat_seconds=0.05)
    app.state.broadcaster = hub
    client = TestClient(app)

    with client.websocket_connect("/ws/demo/d1") as ws:
        frame = ws.receive_json()
        assert frame["type"] == "system.ping"
        assert hub.subscriber_count("d1") == 1
        ws.send_json({"type": "system.pong"})
        ws.send_json({"type": "broadcast", "event": "play_video"})

    assert hub.subscriber_count("d1") == 0


def _tavus(handler) -> TavusClient:
    tavus = TavusClient("key", "https://tavus.test/v2")
    tavus.client = httpx.AsyncClient(
        base_url=tavus.base_url, transport=httpx.MockTransport(handler)
    )
    return tavus


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [200, 204, 404])
async def test_end_conversation_accepts_success_and_missing(status_code):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(status_code)

    tavus = _tavus(handler)
    await tavus.end_conversation("c1")
    await tavus.aclose()
    assert seen == ["/v2/conversations/c1/end"]


@pytest.mark.asyncio
async def test_end_conversation_raises_on_server_error():
    tavus = _tavus(lambda request: httpx.Response(500))
    with pytest.raises(ProviderError):
        await tavus.end_conversation("c1")
    await tavus.aclose()


@pytest.mark.asyncio
async def test_end_conversation_requires_api_key():
    tavus = TavusClient("", "https://tavus.test/v2")
    with pytest.raises(ProviderError):
        await tavus.end_conversation("c1")
    await tavus.aclose()


class FakeSocket:
    def __init__(self, frames: list[dict]) -> None:
        self.frames = [json.dumps(frame) for frame in frames]
        self.sent: list[str] = []

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for raw in self.frames:
            yield raw

    async def send(self, raw: str) -> None:
        self.sent.append(raw)


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_the_listener():
    ws = FakeSocket(
        [
            {"type": "broadcast", "event": "play_video", "payload": {"url": "a"}},
            {"type": "system.ping"},
            {"type": "broadcast", "event": "show_trial_cta", "payload": {}},
        ]
    )
    received = []

    def callback(message):
        received.append(message.event)
        if message.event == "play_video":
            raise RuntimeError("listener bug")

    await RealtimeClient("ws://test")._listen(ws, "d1", callback)

    assert received == ["play_video", "show_trial_cta"]
    assert ws.sent == [json.dumps({"type": "system.pong"})]


@pytest.mark.asyncio
async def test_rejected_handshake_is_retried(monkeypatch):
    attempts = []

    def fake_connect(url):
        attempts.append(url)
        if len(attempts) < 3:
            raise websockets.exceptions.InvalidHandshake("server rejected WebSocket connection")
        raise asyncio.CancelledError

    monkeypatch.setattr(transport.websockets, "connect", fake_connect)
    monkeypatch.setattr(transport, "MAX_BACKOFF_SECONDS", 0)

    await asyncio.wait_for(RealtimeClient("ws://test")._run("d1", lambda m: None), timeout=1)

    assert attempts == ["ws://test/ws/demo/d1"] * 3
