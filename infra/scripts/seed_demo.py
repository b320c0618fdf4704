import argparse
import asyncio

from sqlalchemy import select

from demohub.config import settings
from demohub.db import create_engine, create_sessionmaker
from demohub.models import Base, Demo, DemoVideo

DEMO_CONFIG = {
    "name": "Product walkthrough",
    "cta_title": "Ready to try it yourself?",
    "cta_message": "Start a free 14-day trial, no credit card required.",
    "cta_button_text": "Start free trial",
    "cta_button_url": "https://example.com/trial",
    "videos": {
        "Product Overview": "videos/product-overview.mp4",
        "Analytics Dashboard": "videos/analytics-dashboard.mp4",
        "Integrations": "videos/integrations.mp4",
    },
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a demo and its videos.")
    parser.add_argument("--demo-id", default="demo-local", help="Demo id to create or update")
    parser.add_argument(
        "--conversation-id",
        default=None,
        help="Provider conversation id to attach to the demo",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the models instead of relying on alembic",
    )
    return parser.parse_args()


async def seed_demo(demo_id: str, conversation_id: str | None, create_tables: bool) -> None:
    engine = create_engine(settings.database_url)
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with create_sessionmaker(engine)() as db:
        demo = await db.get(Demo, demo_id)
        if demo is None:
            demo = Demo(id=demo_id)
            db.add(demo)
        demo.name = DEMO_CONFIG["name"]
        demo.cta_title = DEMO_CONFIG["cta_title"]
        demo.cta_message = DEMO_CONFIG["cta_message"]
        demo.cta_button_text = DEMO_CONFIG["cta_button_text"]
        demo.cta_button_url = DEMO_CONFIG["cta_button_url"]
        if conversation_id:
            demo.tavus_conversation_id = conversation_id
        await db.flush()

        existing_titles = set(
            (
                await db.execute(select(DemoVideo.title).where(DemoVideo.demo_id == demo_id))
            ).scalars().all()
        )

        seeded_count = 0
        for title, storage_url in DEMO_CONFIG["videos"].items():
            if title in existing_titles:
                continue
            db.add(DemoVideo(demo_id=demo_id, title=title, storage_url=storage_url))
            seeded_count += 1

        await db.commit()
        print(f"Seeded demo {demo_id} with {seeded_count} new videos")

    await engine.dispose()


def main() -> None:
    args = parse_args()
    asyncio.run(seed_demo(args.demo_id, args.conversation_id, args.create_tables))


if __name__ == "__main__":
    main()
