import json

import pytest
from sqlalchemy import func, select

from conftest import WEBHOOK_SECRET, WEBHOOK_TOKEN
from demohub.models import ConversationDetails, ProcessedWebhookEvent, QualificationData
from demohub.services.signature_service import sign

QUALIFICATION = {
    "event_type": "application.qualification_data",
    "conversation_id": "c1",
    "properties": {
        "objective_name": "greeting_and_qualification",
        "output_variables": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
    },
}


def _body(payload) -> bytes:
    return json.dumps(payload).encode()


def _signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    return {"content-type": "application/json", "x-tavus-signature": sign(body, secret)}


async def _count(db_session, model) -> int:
    return await db_session.scalar(select(func.count()).select_from(model))


@pytest.mark.asyncio
async def test_signed_qualification_is_stored_once(client, db_session, published):
    messages = published("d1")
    body = _body(QUALIFICATION)

    first = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))

    assert first.status_code == 200
    assert first.json()["received"] is True
    assert first.json()["status"] == "processed"
    row = await db_session.scalar(
        select(QualificationData).where(QualificationData.conversation_id == "c1")
    )
    assert (row.first_name, row.last_name, row.email) == ("Ada", "Lovelace", "ada@example.com")
    assert messages == []

    second = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))

    assert second.status_code == 200
    assert second.json()["status"] == "duplicate"
    assert second.json()["event_id"] == first.json()["event_id"]
    assert await _count(db_session, QualificationData) == 1


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected_without_side_effects(client, db_session):
    body = _body(QUALIFICATION)

    response = await client.post(
        "/tavus-webhook", content=body, headers=_signed_headers(body, "not-the-secret")
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert await _count(db_session, QualificationData) == 0
    assert await _count(db_session, ProcessedWebhookEvent) == 0


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(client):
    response = await client.post("/tavus-webhook", content=_body(QUALIFICATION))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_fallback_on_alternate_path(client, db_session):
    body = _body(QUALIFICATION)

    response = await client.post(
        f"/webhooks/tavus?t={WEBHOOK_TOKEN}",
        content=body,
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 200
    assert await _count(db_session, QualificationData) == 1


@pytest.mark.asyncio
async def test_unconfigured_secrets_reject_everything(client, monkeypatch, webhook_secrets):
    monkeypatch.setattr(webhook_secrets, "tavus_webhook_secret", "")
    monkeypatch.setattr(webhook_secrets, "tavus_webhook_token", "")
    body = _body(QUALIFICATION)

    response = await client.post(
        f"/tavus-webhook?token={WEBHOOK_TOKEN}", content=body, headers=_signed_headers(body)
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_json_with_valid_signature(client, db_session):
    body = b"{not json"

    response = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON payload"}
    assert await _count(db_session, ProcessedWebhookEvent) == 0


@pytest.mark.asyncio
async def test_json_array_is_not_a_payload(client):
    body = b"[1, 2]"
    response = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_missing_conversation_id_is_a_bad_request(client):
    body = _body({"event_type": "application.qualification_data", "properties": {}})
    response = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_event_is_acknowledged(client, db_session):
    body = _body({"event_type": "system.something_new", "conversation_id": "c1"})

    response = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert await _count(db_session, ConversationDetails) == 0


@pytest.mark.asyncio
async def test_explicit_event_id_deduplicates_different_bodies(client, db_session):
    first = _body({"id": "evt_1", "event_type": "conversation.started", "conversation_id": "c1"})
    second = _body({"id": "evt_1", "event_type": "conversation.ended", "conversation_id": "c1"})

    await client.post("/tavus-webhook", content=first, headers=_signed_headers(first))
    response = await client.post("/tavus-webhook", content=second, headers=_signed_headers(second))

    assert response.json() == {
        "received": True,
        "status": "duplicate",
        "event_id": "evt_1",
        "error": None,
    }
    conversation = await db_session.scalar(select(ConversationDetails))
    assert conversation.status == "active"


@pytest.mark.asyncio
async def test_tool_call_reaches_subscribers(client, seed_demo, published):
    await seed_demo(videos={"Product Overview": "videos/overview.mp4"})
    messages = published("d1")
    body = _body(
        {
            "event_type": "conversation.tool_call",
            "conversation_id": "c1",
            "properties": {"name": "fetch_video", "arguments": '{"title": "Product Overview"}'},
        }
    )

    response = await client.post("/tavus-webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 200
    assert [(m.topic, m.event, m.payload) for m in messages] == [
        ("demo-d1", "play_video", {"url": "https://cdn.example.com/videos/overview.mp4"})
    ]


@pytest.mark.asyncio
async def test_response_carries_trace_id(client):
    body = _body({"event_type": "mystery"})
    response = await client.post(
        "/tavus-webhook",
        content=body,
        headers={**_signed_headers(body), "x-request-id": "trace-123"},
    )
    assert response.headers["x-trace-id"] == "trace-123"
