from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from demohub.dependencies import get_event_store
from demohub.schemas.webhooks import CtaClickRequest, CtaClickResponse
from demohub.services.event_store import EventStore

router = APIRouter(tags=["cta"])
logger = structlog.get_logger()


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else ""


@router.post("/track-cta-click", response_model=CtaClickResponse)
async def track_cta_click(
    body: CtaClickRequest,
    request: Request,
    store: Annotated[EventStore, Depends(get_event_store)],
):
    if not body.conversation_id or not body.demo_id:
        raise HTTPException(
            status_code=400, detail="Missing required fields: conversation_id and demo_id"
        )

    try:
        await store.track_cta_click(
            conversation_id=body.conversation_id,
            demo_id=body.demo_id,
            cta_url=body.cta_url,
            user_agent=request.headers.get("user-agent", ""),
            ip_address=client_ip(request),
        )
    except SQLAlchemyError as exc:
        await store.rollback()
        logger.error(
            "cta_click_tracking_failed", conversation_id=body.conversation_id, error=str(exc)
        )
        raise HTTPException(status_code=500, detail="Failed to track CTA click") from exc

    logger.info("cta_click_tracked", conversation_id=body.conversation_id, demo_id=body.demo_id)
    return CtaClickResponse()
