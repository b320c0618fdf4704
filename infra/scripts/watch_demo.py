import argparse
import asyncio

from demohub.client.reducer import ClientUIState
from demohub.client.session import DemoSession
from demohub.client.transport import RealtimeClient


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Follow a demo channel and print UI transitions.")
    parser.add_argument("--demo-id", required=True, help="Demo id to subscribe to")
    parser.add_argument("--base-url", default="ws://localhost:8000")
    parser.add_argument(
        "--seconds",
        type=float,
        default=0,
        help="Stop after this many seconds (0 runs until interrupted)",
    )
    return parser.parse_args()


def print_transition(previous: ClientUIState, new: ClientUIState) -> None:
    print(f"{previous.status.value} -> {new.status.value}")
    if new.video_url:
        print(f"  video: {new.video_url}")
    if new.cta:
        print(f"  cta: {new.cta}")


def print_refresh(payload: dict) -> None:
    print(
        "analytics_updated "
        f"(conversation_id={payload.get('conversation_id')}, "
        f"event_type={payload.get('event_type')})"
    )


async def watch(demo_id: str, base_url: str, seconds: float) -> None:
    session = DemoSession(demo_id, RealtimeClient(base_url), on_analytics_updated=print_refresh)
    session.add_listener(print_transition)
    print(f"Watching demo-{demo_id} on {base_url}")
    with session:
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            await asyncio.Event().wait()


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(watch(args.demo_id, args.base_url, args.seconds))
    except KeyboardInterrupt:
        print("Stopped")


if __name__ == "__main__":
    main()
