from typing import Literal

from pydantic import BaseModel

WebhookStatus = Literal["processed", "ignored", "duplicate"]


class WebhookAck(BaseModel):
    received: bool = True
    status: WebhookStatus
    event_id: str
    error: str | None = None


class CtaClickRequest(BaseModel):
    conversation_id: str | None = None
    demo_id: str | None = None
    cta_url: str | None = None


class CtaClickResponse(BaseModel):
    success: bool = True


class EndConversationResponse(BaseModel):
    conversation_id: str
    status: str
    provider_notified: bool
