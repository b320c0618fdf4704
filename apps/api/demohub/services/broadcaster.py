"""
Per-demo publish/subscribe fanout.

The server is the only publisher. Subscribers are browser WebSockets or
in-process callbacks; delivery is at-most-once to whoever is subscribed at
publish time, and persistence remains the source of truth.
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, get_args

import structlog
from fastapi import WebSocket, WebSocketDisconnect

logger = structlog.get_logger()

BroadcastEventName = Literal["play_video", "show_trial_cta", "analytics_updated"]
BROADCAST_EVENTS: frozenset[str] = frozenset(get_args(BroadcastEventName))
HEARTBEAT_SECONDS = 30

Callback = Callable[["BroadcastMessage"], Awaitable[None] | None]


def topic_for(demo_id: str) -> str:
    return f"demo-{demo_id}"


@dataclass(frozen=True)
class BroadcastMessage:
    demo_id: str
    event: str
    payload: dict = field(default_factory=dict)

    @property
    def topic(self) -> str:
        return topic_for(self.demo_id)

    def to_frame(self) -> dict:
        return {
            "type": "broadcast",
            "topic": self.topic,
            "event": self.event,
            "payload": self.payload,
        }


class Broadcaster(Protocol):
    async def publish(
        self, demo_id: str, event: BroadcastEventName, payload: dict | None = None
    ) -> None: ...


class Subscription:
    def __init__(self, hub: "InProcessBroadcaster", topic: str, subscriber: Any) -> None:
        self._hub = hub
        self.topic = topic
        self._subscriber = subscriber
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._hub._remove(self.topic, self._subscriber)
            self.active = False


class InProcessBroadcaster:
    """Topic-keyed fanout for a single process; one instance per app."""

    def __init__(self, heartbeat_seconds: float = HEARTBEAT_SECONDS) -> None:
        self._sockets: defaultdict[str, set[WebSocket]] = defaultdict(set)
        self._callbacks: defaultdict[str, list[Callback]] = defaultdict(list)
        self._heartbeats: dict[str, asyncio.Task] = {}
        self.heartbeat_seconds = heartbeat_seconds

    def subscriber_count(self, demo_id: str) -> int:
        topic = topic_for(demo_id)
        return len(self._sockets.get(topic, ())) + len(self._callbacks.get(topic, ()))

    def subscribe(self, demo_id: str, callback: Callback) -> Subscription:
        topic = topic_for(demo_id)
        self._callbacks[topic].append(callback)
        logger.debug("broadcast_subscribed", topic=topic)
        return Subscription(self, topic, callback)

    def add_socket(self, demo_id: str, websocket: WebSocket) -> Subscription:
        topic = topic_for(demo_id)
        self._sockets[topic].add(websocket)
        task = self._heartbeats.get(topic)
        if task is None or task.done():
            self._heartbeats[topic] = asyncio.create_task(self._heartbeat(topic))
        logger.info("ws_connected", topic=topic)
        return Subscription(self, topic, websocket)

    def _remove(self, topic: str, subscriber: Any) -> None:
        sockets = self._sockets.get(topic)
        if sockets is not None and subscriber in sockets:
            sockets.discard(subscriber)
        elif subscriber in self._callbacks.get(topic, []):
            self._callbacks[topic].remove(subscriber)
        if not self._sockets.get(topic):
            self._sockets.pop(topic, None)
            task = self._heartbeats.pop(topic, None)
            if task is not None:
                task.cancel()
        if not self._callbacks.get(topic):
            self._callbacks.pop(topic, None)

    async def publish(
        self, demo_id: str, event: BroadcastEventName, payload: dict | None = None
    ) -> None:
        if event not in BROADCAST_EVENTS:
            raise ValueError(f"Unsupported broadcast event: {event}")
        message = BroadcastMessage(demo_id=demo_id, event=event, payload=payload or {})
        try:
            delivered = await self._fanout(message)
        except Exception as exc:
            logger.warning(
                "broadcast_failed", topic=message.topic, broadcast_event=event, error=str(exc)
            )
            return
        logger.info(
            "broadcast_published",
            topic=message.topic,
            broadcast_event=event,
            subscribers=delivered,
        )

    async def _fanout(self, message: BroadcastMessage) -> int:
        delivered = 0
        frame = message.to_frame()
        stale: list[WebSocket] = []
        for conn in list(self._sockets.get(message.topic, set())):
            if await _safe_send_json(conn, frame):
                delivered += 1
            else:
                stale.append(conn)
        for conn in stale:
            self._remove(message.topic, conn)

        for callback in list(self._callbacks.get(message.topic, [])):
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as exc:
                logger.warning("broadcast_callback_failed", topic=message.topic, error=str(exc))
        return delivered

    async def _heartbeat(self, topic: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.heartbeat_seconds)
                sockets = self._sockets.get(topic)
                if not sockets:
                    return
                ping = {"type": "system.ping", "ts": datetime.now(UTC).isoformat()}
                for conn in list(sockets):
                    if not await _safe_send_json(conn, ping):
                        self._remove(topic, conn)
        except asyncio.CancelledError:
            return

    async def close(self) -> None:
        for task in self._heartbeats.values():
            task.cancel()
        self._heartbeats.clear()
        self._sockets.clear()
        self._callbacks.clear()


async def _safe_send_json(websocket: WebSocket, payload: dict) -> bool:
    try:
        await websocket.send_json(payload)
        return True
    except (RuntimeError, WebSocketDisconnect):
        return False
    except Exception:
        return False
