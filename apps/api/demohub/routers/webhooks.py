import json
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from demohub.config import settings
from demohub.db import get_db
from demohub.dependencies import get_broadcaster, get_webhook_secrets
from demohub.errors import MalformedPayload
from demohub.schemas.webhooks import WebhookAck
from demohub.services.broadcaster import InProcessBroadcaster
from demohub.services.classifier import classify
from demohub.services.event_store import EventStore
from demohub.services.idempotency_service import IdempotencyLedger, derive_event_identity
from demohub.services.ingestion_service import IngestionRouter
from demohub.services.signature_service import (
    SIGNATURE_HEADERS,
    TOKEN_PARAMS,
    WebhookSecrets,
    verify_with_method,
)

router = APIRouter(tags=["webhooks"])
logger = structlog.get_logger()


def _signature_header(request: Request) -> str | None:
    for name in SIGNATURE_HEADERS:
        value = request.headers.get(name)
        if value:
            return value
    return None


def _token_param(request: Request) -> str | None:
    for name in TOKEN_PARAMS:
        value = request.query_params.get(name)
        if value:
            return value
    return None


@router.post("/tavus-webhook", response_model=WebhookAck)
@router.post("/webhooks/tavus", response_model=WebhookAck)
async def tavus_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    broadcaster: Annotated[InProcessBroadcaster, Depends(get_broadcaster)],
    secrets: Annotated[WebhookSecrets, Depends(get_webhook_secrets)],
):
    # Signature covers these exact bytes; never re-serialise before verifying
    raw_body = await request.body()

    method = verify_with_method(raw_body, _signature_header(request), _token_param(request), secrets)
    if method == "none":
        logger.warning("webhook_auth_failed", content_length=len(raw_body))
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        parsed = json.loads(raw_body)
    except ValueError:
        logger.warning("webhook_invalid_json", auth_method=method)
        return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)
    if not isinstance(parsed, dict):
        logger.warning("webhook_invalid_json", auth_method=method, reason="not_an_object")
        return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)

    event_id = derive_event_identity(parsed, raw_body)
    structlog.contextvars.bind_contextvars(webhook_event_id=event_id)
    try:
        logger.info(
            "webhook_received",
            auth_method=method,
            event_type=parsed.get("event_type"),
            conversation_id=parsed.get("conversation_id"),
        )

        claim = await IdempotencyLedger(db).claim(event_id)
        if claim.is_duplicate:
            return WebhookAck(status="duplicate", event_id=event_id)

        event = classify(parsed, text_fallback=settings.toolcall_text_fallback)
        ingestion = IngestionRouter(EventStore(db), broadcaster, settings.video_base_url)
        try:
            result = await ingestion.route(event)
        except MalformedPayload as exc:
            logger.warning("webhook_malformed_payload", error=str(exc))
            return JSONResponse({"error": str(exc)}, status_code=400)

        return WebhookAck(status=result.status, event_id=event_id, error=result.error)
    except Exception:
        logger.exception("webhook_unhandled_error")
        return JSONResponse({"error": "Internal server error"}, status_code=500)
    finally:
        structlog.contextvars.unbind_contextvars("webhook_event_id")
