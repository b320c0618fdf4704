from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from demohub.dependencies import get_broadcaster, get_event_store, get_tavus_client
from demohub.errors import ProviderError
from demohub.models.demo import utcnow
from demohub.schemas.webhooks import EndConversationResponse
from demohub.services.broadcaster import InProcessBroadcaster
from demohub.services.event_store import EventStore
from demohub.services.tavus_client import TavusClient

router = APIRouter(prefix="/conversations", tags=["conversations"])
logger = structlog.get_logger()


@router.post("/{conversation_id}/end", response_model=EndConversationResponse)
async def end_conversation(
    conversation_id: str,
    store: Annotated[EventStore, Depends(get_event_store)],
    broadcaster: Annotated[InProcessBroadcaster, Depends(get_broadcaster)],
    tavus: Annotated[TavusClient, Depends(get_tavus_client)],
):
    provider_notified = True
    try:
        await tavus.end_conversation(conversation_id)
    except ProviderError as exc:
        provider_notified = False
        logger.warning("tavus_end_conversation_failed", conversation_id=conversation_id, error=str(exc))

    try:
        demo = await store.find_demo_by_conversation(conversation_id)
        demo_id = demo.id if demo is not None else None
        await store.upsert_conversation(
            conversation_id, demo_id, status="ended", completed_at=utcnow()
        )
    except SQLAlchemyError as exc:
        await store.rollback()
        logger.error("conversation_end_persist_failed", conversation_id=conversation_id, error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to end conversation") from exc

    if demo_id is not None:
        await broadcaster.publish(
            demo_id,
            "analytics_updated",
            {"conversation_id": conversation_id, "event_type": "conversation.ended"},
        )

    return EndConversationResponse(
        conversation_id=conversation_id, status="ended", provider_notified=provider_notified
    )
