from demohub.models.captured_data import (
    CtaTracking,
    ProductInterestData,
    QualificationData,
    VideoShowcaseData,
)
from demohub.models.conversation import ConversationDetails
from demohub.models.demo import Base, Demo, DemoVideo
from demohub.models.processed_event import ProcessedWebhookEvent

__all__ = [
    "Base",
    "Demo",
    "DemoVideo",
    "ConversationDetails",
    "QualificationData",
    "ProductInterestData",
    "VideoShowcaseData",
    "CtaTracking",
    "ProcessedWebhookEvent",
]
