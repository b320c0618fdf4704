from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from demohub.config import settings
from demohub.db import get_db
from demohub.services.broadcaster import InProcessBroadcaster
from demohub.services.event_store import EventStore
from demohub.services.signature_service import WebhookSecrets
from demohub.services.tavus_client import TavusClient


def get_broadcaster(request: Request) -> InProcessBroadcaster:
    return request.app.state.broadcaster


def get_tavus_client(request: Request) -> TavusClient:
    return request.app.state.tavus_client


def get_webhook_secrets() -> WebhookSecrets:
    return WebhookSecrets(
        hmac_secret=settings.tavus_webhook_secret or None,
        token_secret=settings.tavus_webhook_token or None,
    )


def get_event_store(db: Annotated[AsyncSession, Depends(get_db)]) -> EventStore:
    return EventStore(db)
