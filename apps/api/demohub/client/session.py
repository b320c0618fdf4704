import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

from demohub.client.reducer import INITIAL_STATE, ClientUIState, close_video, reduce
from demohub.services.broadcaster import BroadcastMessage

logger = structlog.get_logger()

Listener = Callable[[ClientUIState, ClientUIState], None]
RefreshHook = Callable[[dict], Awaitable[None] | None]


class ChannelSubscription(Protocol):
    active: bool

    def unsubscribe(self) -> None: ...


class Channel(Protocol):
    def subscribe(self, demo_id: str, callback: Callable[[BroadcastMessage], Any]) -> ChannelSubscription: ...


class DemoSession:
    """Owns one demo view's UI state and its single channel subscription."""

    def __init__(
        self,
        demo_id: str,
        channel: Channel,
        on_analytics_updated: RefreshHook | None = None,
    ) -> None:
        self.demo_id = demo_id
        self.channel = channel
        self.on_analytics_updated = on_analytics_updated
        self.state: ClientUIState = INITIAL_STATE
        self._subscription: ChannelSubscription | None = None
        self._listeners: list[Listener] = []

    @property
    def mounted(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def mount(self) -> None:
        if self.mounted:
            return
        self._subscription = self.channel.subscribe(self.demo_id, self.handle_message)
        logger.debug("demo_session_mounted", demo_id=self.demo_id)

    def unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.debug("demo_session_unmounted", demo_id=self.demo_id)

    def __enter__(self) -> "DemoSession":
        self.mount()
        return self

    def __exit__(self, *exc_info) -> None:
        self.unmount()

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _transition(self, new_state: ClientUIState) -> None:
        previous, self.state = self.state, new_state
        if new_state == previous:
            return
        for listener in list(self._listeners):
            listener(previous, new_state)

    async def handle_message(self, message: BroadcastMessage) -> None:
        self._transition(reduce(self.state, message))
        if message.event == "analytics_updated" and self.on_analytics_updated is not None:
            result = self.on_analytics_updated(message.payload)
            if inspect.isawaitable(result):
                await result

    def close_video(self) -> None:
        self._transition(close_video(self.state))
