import argparse
import asyncio
import json
import os
import uuid
from pathlib import Path

import httpx

from demohub.services.signature_service import sign

SAMPLE_EVENTS = {
    "started": {"event_type": "system.replica_joined"},
    "qualification": {
        "event_type": "application.objective_completed",
        "properties": {
            "objective_name": "greeting_and_qualification",
            "output_variables": {
                "first_name": "Ada",
                "last_name": "Lovelace",
                "email": "ada@example.com",
                "position": "CTO",
            },
        },
    },
    "video": {
        "event_type": "conversation.tool_call",
        "properties": {"name": "fetch_video", "arguments": '{"title": "Product Overview"}'},
    },
    "cta": {
        "event_type": "conversation.tool_call",
        "properties": {"name": "show_trial_cta", "arguments": "{}"},
    },
    "perception": {
        "event_type": "application.perception_analysis",
        "properties": {"analysis": "Engaged throughout, leaned in during the dashboard video."},
    },
    "ended": {"event_type": "system.shutdown"},
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a signed provider webhook to the API.")
    parser.add_argument("--url", default="http://localhost:8000/tavus-webhook")
    parser.add_argument("--conversation-id", required=True, help="Provider conversation id")
    parser.add_argument(
        "--event",
        choices=sorted(SAMPLE_EVENTS),
        help="Built-in sample event to send",
    )
    parser.add_argument("--file", help="Path to a JSON payload to send instead of a sample")
    parser.add_argument(
        "--secret",
        default=os.environ.get("TAVUS_WEBHOOK_SECRET", ""),
        help="HMAC secret (defaults to TAVUS_WEBHOOK_SECRET)",
    )
    parser.add_argument("--token", help="Send the shared-secret token instead of a signature")
    parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="Send the exact same bytes this many times to exercise deduplication",
    )
    parser.add_argument(
        "--event-id",
        action="store_true",
        help="Add a random explicit event id to the payload",
    )
    return parser.parse_args()


def build_payload(args: argparse.Namespace) -> dict:
    if args.file:
        payload = json.loads(Path(args.file).read_text(encoding="utf-8"))
    elif args.event:
        payload = json.loads(json.dumps(SAMPLE_EVENTS[args.event]))
    else:
        raise SystemExit("Either --event or --file is required")
    payload.setdefault("conversation_id", args.conversation_id)
    if args.event_id:
        payload["id"] = str(uuid.uuid4())
    return payload


async def send(args: argparse.Namespace) -> None:
    body = json.dumps(build_payload(args)).encode("utf-8")
    headers = {"content-type": "application/json"}
    params = {}
    if args.token:
        params["t"] = args.token
    elif args.secret:
        headers["x-tavus-signature"] = sign(body, args.secret)
    else:
        print("Warning: sending unauthenticated webhook; expect 401")

    async with httpx.AsyncClient(timeout=10.0) as client:
        for attempt in range(1, args.repeat + 1):
            response = await client.post(args.url, content=body, headers=headers, params=params)
            print(f"[{attempt}/{args.repeat}] {response.status_code} {response.text}")


def main() -> None:
    asyncio.run(send(parse_args()))


if __name__ == "__main__":
    main()
