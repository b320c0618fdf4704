import asyncio

import pytest

from demohub.services.broadcaster import BroadcastMessage, InProcessBroadcaster, topic_for


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    async def send_json(self, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


def test_topic_naming():
    assert topic_for("abc") == "demo-abc"
    assert BroadcastMessage("abc", "play_video", {"url": "u"}).to_frame() == {
        "type": "broadcast",
        "topic": "demo-abc",
        "event": "play_video",
        "payload": {"url": "u"},
    }


@pytest.mark.asyncio
async def test_publish_reaches_only_the_demo_topic(broadcaster):
    d1, d2 = [], []
    broadcaster.subscribe("d1", d1.append)
    broadcaster.subscribe("d2", d2.append)

    await broadcaster.publish("d1", "show_trial_cta", {"cta_title": "Try it"})

    assert [m.payload for m in d1] == [{"cta_title": "Try it"}]
    assert d2 == []


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(broadcaster):
    received = []

    async def callback(message):
        await asyncio.sleep(0)
        received.append(message.event)

    broadcaster.subscribe("d1", callback)
    await broadcaster.publish("d1", "analytics_updated")
    assert received == ["analytics_updated"]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery(broadcaster):
    received = []
    subscription = broadcaster.subscribe("d1", received.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    await broadcaster.publish("d1", "analytics_updated")

    assert received == []
    assert subscription.active is False
    assert broadcaster.subscriber_count("d1") == 0


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_a_no_op(broadcaster):
    await broadcaster.publish("nobody", "analytics_updated", {})


@pytest.mark.asyncio
async def test_unknown_event_name_is_rejected(broadcaster):
    with pytest.raises(ValueError):
        await broadcaster.publish("d1", "reboot", {})


@pytest.mark.asyncio
async def test_failing_callback_does_not_block_others(broadcaster):
    received = []

    def broken(message):
        raise RuntimeError("boom")

    broadcaster.subscribe("d1", broken)
    broadcaster.subscribe("d1", received.append)
    await broadcaster.publish("d1", "analytics_updated")
    assert len(received) == 1


@pytest.mark.asyncio
async def test_sockets_receive_frames_and_stale_ones_are_dropped(broadcaster):
    healthy, stale = FakeSocket(), FakeSocket(fail=True)
    broadcaster.add_socket("d1", healthy)
    broadcaster.add_socket("d1", stale)

    await broadcaster.publish("d1", "play_video", {"url": "https://cdn.example.com/a.mp4"})

    assert healthy.sent[0]["event"] == "play_video"
    assert healthy.sent[0]["topic"] == "demo-d1"
    assert broadcaster.subscriber_count("d1") == 1


@pytest.mark.asyncio
async def test_heartbeat_pings_sockets(broadcaster):
    socket = FakeSocket()
    subscription = broadcaster.add_socket("d1", socket)

    await asyncio.sleep(0.12)
    subscription.unsubscribe()

    assert socket.sent
    assert all(frame["type"] == "system.ping" for frame in socket.sent)


@pytest.mark.asyncio
async def test_close_drops_everything():
    hub = InProcessBroadcaster(heartbeat_seconds=10)
    hub.add_socket("d1", FakeSocket())
    hub.subscribe("d1", lambda message: None)

    await hub.close()

    assert hub.subscriber_count("d1") == 0
