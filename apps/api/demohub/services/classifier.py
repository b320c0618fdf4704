"""
Maps a parsed provider payload onto a closed set of event kinds.

``classify`` is pure and never raises: unrecognised event types become
``Unknown`` and missing optional fields are left empty. Demo ids that are not
in the payload are resolved later by the ingestion router.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from demohub.services.tool_parser import (
    ToolCall as ParsedToolCall,
    is_tool_call_type,
    normalize_event_type,
    parse_tool_call,
)

logger = structlog.get_logger()

QUALIFICATION_OBJECTIVES = frozenset({"contact_information_collection", "greeting_and_qualification"})
PRODUCT_INTEREST_OBJECTIVE = "product_interest_discovery"
VIDEO_SHOWCASE_OBJECTIVE = "demo_video_showcase"

LIFECYCLE_STARTED_TYPES = frozenset({"conversation_started", "system_replica_joined"})
LIFECYCLE_ENDED_TYPES = frozenset(
    {
        "conversation_ended",
        "conversation_completed",
        "application_conversation_ended",
        "application_conversation_completed",
        "system_shutdown",
    }
)
OBJECTIVE_COMPLETED_TYPES = frozenset(
    {
        "application_objective_completed",
        "objective_completed",
        "conversation_objective_completed",
    }
)
TRANSCRIPT_TYPE = "application_transcription_ready"
PERCEPTION_TYPE = "application_perception_analysis"
QUALIFICATION_TYPE = "application_qualification_data"
PRODUCT_INTEREST_TYPE = "application_product_interest"
VIDEO_SHOWCASE_TYPE = "application_video_showcase"
CTA_CLICK_TYPES = frozenset({"application_cta_click", "application_cta_clicked"})
# Substrings of generic analytics events merged into demo analytics
ANALYTICS_MARKERS = ("perception", "analytics", "summary_ready")


@dataclass(frozen=True)
class BaseEvent:
    event_type: str
    conversation_id: str | None = None
    demo_id: str | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class ConversationLifecycle(BaseEvent):
    phase: Literal["started", "ended"] = "ended"
    analytics: Any = None


@dataclass(frozen=True)
class ToolCall(BaseEvent):
    tool_name: str | None = None
    tool_args: Any = None

    @property
    def video_title(self) -> str:
        return ParsedToolCall(self.tool_name, self.tool_args).video_title


@dataclass(frozen=True)
class QualificationData(BaseEvent):
    objective_name: str = "greeting_and_qualification"
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    position: str | None = None


@dataclass(frozen=True)
class ProductInterest(BaseEvent):
    objective_name: str = PRODUCT_INTEREST_OBJECTIVE
    primary_interest: str | None = None
    pain_points: list[str] | None = None


@dataclass(frozen=True)
class CTAClick(BaseEvent):
    cta_url: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class VideoShowcase(BaseEvent):
    objective_name: str = VIDEO_SHOWCASE_OBJECTIVE
    requested_videos: list[str] | None = None
    videos_shown: list[str] | None = None


@dataclass(frozen=True)
class PerceptionAnalysis(BaseEvent):
    analysis: Any = None


@dataclass(frozen=True)
class TranscriptReady(BaseEvent):
    transcript: Any = None


@dataclass(frozen=True)
class Unknown(BaseEvent):
    pass


ClassifiedEvent = (
    ConversationLifecycle
    | ToolCall
    | QualificationData
    | ProductInterest
    | CTAClick
    | VideoShowcase
    | PerceptionAnalysis
    | TranscriptReady
    | Unknown
)


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def _string_list(value: Any) -> list[str] | None:
    if isinstance(value, str):
        return [value] if value.strip() else None
    if isinstance(value, list):
        items = [str(item) for item in value if item not in (None, "")]
        return items or None
    return None


def _first(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate not in (None, ""):
            return candidate
    return None


def _output_variables(event: dict) -> dict:
    properties = _dict(event.get("properties"))
    data = _dict(event.get("data"))
    nested = _first(
        properties.get("output_variables"),
        data.get("output_variables"),
        event.get("output_variables"),
    )
    if isinstance(nested, dict):
        return nested
    return properties


def _objective_name(event: dict) -> str | None:
    return _text(
        _first(
            _dict(event.get("properties")).get("objective_name"),
            _dict(event.get("data")).get("objective_name"),
            event.get("objective_name"),
        )
    )


def _conversation_id(event: dict) -> str | None:
    return _text(
        _first(
            event.get("conversation_id"),
            _dict(event.get("data")).get("conversation_id"),
            _dict(event.get("properties")).get("conversation_id"),
        )
    )


def _demo_id(event: dict) -> str | None:
    return _text(
        _first(
            event.get("demo_id"),
            _dict(event.get("properties")).get("demo_id"),
            _dict(event.get("data")).get("demo_id"),
        )
    )


def _base_fields(event: dict, event_type: str) -> dict:
    return {
        "event_type": event_type,
        "conversation_id": _conversation_id(event),
        "demo_id": _demo_id(event),
        "raw": event,
    }


def _qualification(event: dict, base: dict, objective: str | None) -> QualificationData:
    outputs = _output_variables(event)
    return QualificationData(
        **base,
        objective_name=objective or "greeting_and_qualification",
        first_name=_text(outputs.get("first_name")),
        last_name=_text(outputs.get("last_name")),
        email=_text(outputs.get("email")),
        position=_text(outputs.get("position")),
    )


def _product_interest(event: dict, base: dict, objective: str | None) -> ProductInterest:
    outputs = _output_variables(event)
    return ProductInterest(
        **base,
        objective_name=objective or PRODUCT_INTEREST_OBJECTIVE,
        primary_interest=_text(outputs.get("primary_interest")),
        pain_points=_string_list(outputs.get("pain_points")),
    )


def _video_showcase(event: dict, base: dict) -> VideoShowcase:
    outputs = _output_variables(event)
    return VideoShowcase(
        **base,
        requested_videos=_string_list(outputs.get("requested_videos")),
        videos_shown=_string_list(outputs.get("videos_shown")),
    )


def _perception_payload(event: dict, data_fallback: bool = True) -> Any:
    data = _dict(event.get("data"))
    properties = _dict(event.get("properties")) or _dict(data.get("properties"))
    analysis = properties.get("analysis")
    if analysis is not None:
        return {"analysis": analysis} if isinstance(analysis, str) else properties
    return _first(
        data.get("perception"),
        event.get("perception"),
        properties or None,
        data.get("analytics"),
        event.get("analytics"),
        data.get("summary"),
        event.get("summary"),
        (data or None) if data_fallback else None,
    )


def classify(parsed: Any, text_fallback: bool = False) -> ClassifiedEvent:
    if not isinstance(parsed, dict):
        return Unknown(event_type="")

    event_type = normalize_event_type(parsed)
    base = _base_fields(parsed, event_type)

    if is_tool_call_type(event_type) or "utterance" in event_type:
        call = parse_tool_call(parsed, text_fallback=text_fallback)
        return ToolCall(**base, tool_name=call.name, tool_args=call.args)

    if event_type == TRANSCRIPT_TYPE:
        call = parse_tool_call(parsed)
        if call.name:
            return ToolCall(**base, tool_name=call.name, tool_args=call.args)
        properties = _dict(parsed.get("properties"))
        transcript = _first(properties.get("transcript"), _dict(parsed.get("data")).get("transcript"))
        return TranscriptReady(**base, transcript=transcript)

    if event_type == PERCEPTION_TYPE:
        return PerceptionAnalysis(**base, analysis=_perception_payload(parsed))

    if event_type in LIFECYCLE_STARTED_TYPES:
        return ConversationLifecycle(**base, phase="started")
    if event_type in LIFECYCLE_ENDED_TYPES:
        return ConversationLifecycle(
            **base, phase="ended", analytics=_perception_payload(parsed, data_fallback=False)
        )

    if event_type == QUALIFICATION_TYPE:
        return _qualification(parsed, base, _objective_name(parsed))
    if event_type == PRODUCT_INTEREST_TYPE:
        return _product_interest(parsed, base, _objective_name(parsed))
    if event_type == VIDEO_SHOWCASE_TYPE:
        return _video_showcase(parsed, base)
    if event_type in CTA_CLICK_TYPES:
        properties = _dict(parsed.get("properties"))
        return CTAClick(
            **base,
            cta_url=_text(_first(properties.get("cta_url"), parsed.get("cta_url"))),
            user_agent=_text(_first(properties.get("user_agent"), parsed.get("user_agent"))),
            ip_address=_text(_first(properties.get("ip_address"), parsed.get("ip_address"))),
        )

    if any(marker in event_type for marker in ANALYTICS_MARKERS):
        return PerceptionAnalysis(**base, analysis=_perception_payload(parsed))

    if event_type in OBJECTIVE_COMPLETED_TYPES:
        objective = _objective_name(parsed)
        if objective in QUALIFICATION_OBJECTIVES:
            return _qualification(parsed, base, objective)
        if objective == PRODUCT_INTEREST_OBJECTIVE:
            return _product_interest(parsed, base, objective)
        if objective == VIDEO_SHOWCASE_OBJECTIVE:
            return _video_showcase(parsed, base)
        logger.info("webhook_unhandled_objective", objective_name=objective)
        return Unknown(**base)

    logger.info("webhook_unknown_event_type", event_type=event_type or None)
    return Unknown(**base)
