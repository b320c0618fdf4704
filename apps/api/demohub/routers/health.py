from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from demohub.db import get_db
from demohub.models.processed_event import ProcessedWebhookEvent

router = APIRouter()


@router.get("/health")
async def health(db: Annotated[AsyncSession, Depends(get_db)]):
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        return {"status": "degraded", "db": "disconnected", "ledger": "unknown"}

    # A missing ledger table means deduplication is silently failing open
    try:
        await db.execute(select(ProcessedWebhookEvent.event_id).limit(1))
        ledger = "ok"
    except SQLAlchemyError:
        await db.rollback()
        ledger = "unavailable"
    status = "ok" if ledger == "ok" else "degraded"
    return {"status": status, "db": "connected", "ledger": ledger}
