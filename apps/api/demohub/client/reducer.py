"""
UI state machine driven by demo channel broadcasts.

    IDLE | DEMO_COMPLETE --play_video(url)--> VIDEO_PLAYING
    any                  --show_trial_cta---> DEMO_COMPLETE
    VIDEO_PLAYING        --close_video------> IDLE

``analytics_updated`` never changes state; the session turns it into a
refresh of pulled analytics data.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from demohub.services.broadcaster import BroadcastMessage


class UIStatus(str, Enum):
    IDLE = "IDLE"
    VIDEO_PLAYING = "VIDEO_PLAYING"
    DEMO_COMPLETE = "DEMO_COMPLETE"


@dataclass(frozen=True)
class ClientUIState:
    status: UIStatus = UIStatus.IDLE
    video_url: str | None = None
    cta: dict | None = None


INITIAL_STATE = ClientUIState()


def _payload(message: BroadcastMessage) -> dict[str, Any]:
    return message.payload if isinstance(message.payload, dict) else {}


def reduce(state: ClientUIState, message: BroadcastMessage) -> ClientUIState:
    if message.event == "play_video":
        url = _payload(message).get("url")
        if not isinstance(url, str) or not url:
            return state
        return ClientUIState(status=UIStatus.VIDEO_PLAYING, video_url=url, cta=state.cta)

    if message.event == "show_trial_cta":
        overrides = {k: v for k, v in _payload(message).items() if v is not None}
        return ClientUIState(status=UIStatus.DEMO_COMPLETE, cta=overrides or state.cta)

    return state


def close_video(state: ClientUIState) -> ClientUIState:
    if state.status is not UIStatus.VIDEO_PLAYING:
        return state
    return replace(state, status=UIStatus.IDLE, video_url=None)
