from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from demohub.config import settings
from demohub.db import create_engine, create_sessionmaker
from demohub.logging_config import setup_logging
from demohub.middleware.correlation import CorrelationIdMiddleware
from demohub.routers import conversations, cta, health, webhooks, ws
from demohub.services.broadcaster import InProcessBroadcaster
from demohub.services.tavus_client import TavusClient

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    # Process-scoped handles; request handlers receive them through app.state
    engine = create_engine(settings.database_url)
    app.state.engine = engine
    app.state.sessionmaker = create_sessionmaker(engine)
    app.state.broadcaster = InProcessBroadcaster()
    app.state.tavus_client = TavusClient(
        settings.tavus_api_key,
        settings.tavus_api_base_url,
        timeout=settings.tavus_api_timeout_seconds,
    )
    if not settings.tavus_webhook_secret and not settings.tavus_webhook_token:
        logger.warning("webhook_auth_not_configured")
    logger.info("demohub_starting", environment=settings.environment)
    yield
    logger.info("demohub_shutting_down")
    await app.state.broadcaster.close()
    await app.state.tavus_client.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Demo Webhook Ingestion API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(cta.router)
    app.include_router(conversations.router)
    app.include_router(ws.router)
    return app


app = create_app()
