import asyncio
import hashlib
import json

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import create_async_engine

from demohub.db import create_sessionmaker
from demohub.models import Base, ProcessedWebhookEvent
from demohub.services.idempotency_service import IdempotencyLedger, derive_event_identity


def test_identity_prefers_explicit_ids():
    body = b"{}"
    assert derive_event_identity({"id": "evt_1"}, body) == "evt_1"
    assert derive_event_identity({"event_id": "evt_2"}, body) == "evt_2"
    assert derive_event_identity({"data": {"event_id": "evt_3"}}, body) == "evt_3"
    assert derive_event_identity({"id": 42}, body) == "42"


def test_identity_falls_back_to_body_hash():
    body = json.dumps({"event_type": "conversation.ended", "conversation_id": "c1"}).encode()
    identity = derive_event_identity(json.loads(body), body)
    assert identity == hashlib.sha256(body).hexdigest()
    # Same bytes, same identity
    assert derive_event_identity(json.loads(body), body) == identity


@pytest.mark.asyncio
async def test_claim_twice_reports_duplicate(db_session):
    ledger = IdempotencyLedger(db_session)

    first = await ledger.claim("evt_1")
    second = await ledger.claim("evt_1")

    assert first.is_duplicate is False
    assert second.is_duplicate is True
    count = await db_session.scalar(select(func.count()).select_from(ProcessedWebhookEvent))
    assert count == 1


@pytest.mark.asyncio
async def test_distinct_identities_both_claim(db_session):
    ledger = IdempotencyLedger(db_session)
    assert (await ledger.claim("evt_a")).is_duplicate is False
    assert (await ledger.claim("evt_b")).is_duplicate is False


@pytest.mark.asyncio
async def test_missing_ledger_fails_open(db_session):
    await db_session.execute(text("DROP TABLE processed_webhook_events"))
    await db_session.commit()

    result = await IdempotencyLedger(db_session).claim("evt_1")

    assert result.is_duplicate is False
    assert result.error


def test_overlong_explicit_id_is_hashed_to_fit():
    long_id = "evt_" + "x" * 300
    identity = derive_event_identity({"id": long_id}, b"{}")
    assert identity == hashlib.sha256(long_id.encode()).hexdigest()
    assert len(identity) <= 128
    # A 128-char id is kept as is
    assert derive_event_identity({"id": "y" * 128}, b"{}") == "y" * 128


@pytest.mark.asyncio
async def test_overlong_id_redelivery_is_a_duplicate(db_session):
    long_id = "evt_" + "x" * 300
    ledger = IdempotencyLedger(db_session)

    first = await ledger.claim(derive_event_identity({"id": long_id}, b"a"))
    second = await ledger.claim(derive_event_identity({"id": long_id}, b"b"))

    assert first.is_duplicate is False
    assert second.is_duplicate is True


@pytest.mark.asyncio
async def test_concurrent_claims_have_a_single_winner(tmp_path):
    # Separate connections on a file database, as with several workers
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = create_sessionmaker(engine)

    async def claim():
        async with factory() as session:
            return await IdempotencyLedger(session).claim("evt_race")

    try:
        results = await asyncio.gather(*(claim() for _ in range(8)))
    finally:
        await engine.dispose()

    assert [r.error for r in results] == [None] * 8
    assert sum(not r.is_duplicate for r in results) == 1
