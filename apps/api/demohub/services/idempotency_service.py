"""
Idempotency ledger backed by the processed_webhook_events table.

The unique key on event_id decides which of several racing deliveries wins;
there is no check-then-insert window. If the ledger itself is unavailable the
claim fails open so provider callbacks are not dropped.
"""

import hashlib
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from demohub.models.processed_event import EVENT_ID_MAX_LENGTH, ProcessedWebhookEvent

logger = structlog.get_logger()

_ID_FIELDS = ("id", "event_id")


@dataclass(frozen=True)
class ClaimResult:
    is_duplicate: bool
    event_id: str
    error: str | None = None


def derive_event_identity(parsed: dict, raw_body: bytes) -> str:
    """Explicit event id from the payload if present, else a SHA-256 of the raw body.

    Explicit ids longer than the ledger column are replaced by their own SHA-256
    so they still dedupe instead of overflowing the key.
    """
    data = parsed.get("data") if isinstance(parsed.get("data"), dict) else {}
    for source in (parsed, data):
        for field in _ID_FIELDS:
            candidate = source.get(field)
            if candidate not in (None, ""):
                identity = str(candidate)
                if len(identity) > EVENT_ID_MAX_LENGTH:
                    return hashlib.sha256(identity.encode()).hexdigest()
                return identity
    return hashlib.sha256(raw_body).hexdigest()


class IdempotencyLedger:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def claim(self, identity: str) -> ClaimResult:
        self.db.add(ProcessedWebhookEvent(event_id=identity))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("webhook_duplicate_delivery", event_id=identity)
            return ClaimResult(is_duplicate=True, event_id=identity)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning(
                "webhook_ledger_unavailable",
                event_id=identity,
                error=str(exc),
            )
            return ClaimResult(is_duplicate=False, event_id=identity, error=str(exc))
        return ClaimResult(is_duplicate=False, event_id=identity)
