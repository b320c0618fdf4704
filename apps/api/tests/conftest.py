import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from demohub.config import settings
from demohub.db import create_sessionmaker
from demohub.errors import ProviderError
from demohub.main import create_app
from demohub.models import Base, Demo, DemoVideo
from demohub.services.broadcaster import InProcessBroadcaster

WEBHOOK_SECRET = "test-webhook-secret"
WEBHOOK_TOKEN = "test-webhook-token"


class FakeTavusClient:
    def __init__(self) -> None:
        self.ended: list[str] = []
        self.error: Exception | None = None

    async def end_conversation(self, conversation_id: str) -> None:
        if self.error is not None:
            raise self.error
        self.ended.append(conversation_id)

    async def aclose(self) -> None:
        pass

    def fail_with(self, message: str = "provider down") -> None:
        self.error = ProviderError(message)


# 1. In-memory database, fresh for every test
@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_sessionmaker(test_engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# 2. Process-scoped handles the lifespan would normally create
@pytest.fixture
async def broadcaster():
    hub = InProcessBroadcaster(heartbeat_seconds=0.05)
    yield hub
    await hub.close()


@pytest.fixture
def tavus_client():
    return FakeTavusClient()


@pytest.fixture
def webhook_secrets(monkeypatch):
    monkeypatch.setattr(settings, "tavus_webhook_secret", WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "tavus_webhook_token", WEBHOOK_TOKEN)
    monkeypatch.setattr(settings, "video_base_url", "https://cdn.example.com")
    return settings


# 3. App wired to the test handles; ASGITransport does not run the lifespan
@pytest.fixture
def app(session_factory, broadcaster, tavus_client, webhook_secrets):
    application = create_app()
    application.state.sessionmaker = session_factory
    application.state.broadcaster = broadcaster
    application.state.tavus_client = tavus_client
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def published(broadcaster):
    """Records broadcasts for the demo ids passed to ``watch``."""
    messages = []

    def watch(*demo_ids: str):
        for demo_id in demo_ids:
            broadcaster.subscribe(demo_id, messages.append)
        return messages

    return watch


@pytest.fixture
async def seed_demo(db_session):
    async def _seed(
        demo_id: str = "d1",
        conversation_id: str | None = "c1",
        videos: dict[str, str] | None = None,
        **fields,
    ) -> Demo:
        demo = Demo(
            id=demo_id,
            name=f"Demo {demo_id}",
            tavus_conversation_id=conversation_id,
            **fields,
        )
        db_session.add(demo)
        for title, storage_url in (videos or {}).items():
            db_session.add(DemoVideo(demo_id=demo_id, title=title, storage_url=storage_url))
        await db_session.commit()
        return demo

    return _seed
