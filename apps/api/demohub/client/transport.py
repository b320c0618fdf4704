"""
WebSocket transport for the demo channel, for clients outside the browser.
"""

import asyncio
import inspect
import json
from collections.abc import Callable
from typing import Any

import structlog
import websockets

from demohub.services.broadcaster import BROADCAST_EVENTS, BroadcastMessage

logger = structlog.get_logger()

MAX_BACKOFF_SECONDS = 8


def decode_frame(frame: Any, demo_id: str) -> BroadcastMessage | None:
    if not isinstance(frame, dict) or frame.get("type") != "broadcast":
        return None
    event = frame.get("event")
    if event not in BROADCAST_EVENTS:
        return None
    payload = frame.get("payload")
    return BroadcastMessage(
        demo_id=demo_id, event=event, payload=payload if isinstance(payload, dict) else {}
    )


class ClientSubscription:
    def __init__(self, task: asyncio.Task) -> None:
        self._task = task
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._task.cancel()
            self.active = False


class RealtimeClient:
    """Subscribes to ``/ws/demo/{demo_id}``; reconnects with capped backoff."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def url_for(self, demo_id: str) -> str:
        return f"{self.base_url}/ws/demo/{demo_id}"

    def subscribe(
        self, demo_id: str, callback: Callable[[BroadcastMessage], Any]
    ) -> ClientSubscription:
        task = asyncio.create_task(self._run(demo_id, callback))
        return ClientSubscription(task)

    async def _run(self, demo_id: str, callback: Callable[[BroadcastMessage], Any]) -> None:
        attempt = 0
        while True:
            error = None
            try:
                async with websockets.connect(self.url_for(demo_id)) as ws:
                    attempt = 0
                    logger.info("realtime_connected", demo_id=demo_id)
                    await self._listen(ws, demo_id, callback)
            except asyncio.CancelledError:
                return
            except (websockets.exceptions.WebSocketException, OSError) as exc:
                # Covers closed connections and rejected or malformed handshakes
                error = str(exc)

            # Broadcasts sent while disconnected are lost; callers re-pull on reconnect
            wait_seconds = min(2 ** attempt, MAX_BACKOFF_SECONDS)
            attempt += 1
            logger.warning(
                "realtime_disconnected", demo_id=demo_id, error=error, retry_in=wait_seconds
            )
            try:
                await asyncio.sleep(wait_seconds)
            except asyncio.CancelledError:
                return

    async def _listen(self, ws, demo_id: str, callback: Callable[[BroadcastMessage], Any]) -> None:
        async for raw in ws:
            try:
                frame = json.loads(raw)
            except ValueError:
                logger.warning("realtime_invalid_frame", demo_id=demo_id)
                continue
            if isinstance(frame, dict) and frame.get("type") == "system.ping":
                await ws.send(json.dumps({"type": "system.pong"}))
                continue
            message = decode_frame(frame, demo_id)
            if message is None:
                continue
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "realtime_callback_failed",
                    demo_id=demo_id,
                    broadcast_event=message.event,
                    error=str(exc),
                )
