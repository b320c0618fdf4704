"""
Routes a classified provider event to its persistence handler and, once the
write has committed, to the matching realtime broadcast.

Persistence failures are reported in the result instead of raised: the
provider cannot fix a downstream outage by retrying the same payload, so the
webhook is still acknowledged.
"""

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urljoin

import structlog
from sqlalchemy.exc import SQLAlchemyError

from demohub.errors import MalformedPayload
from demohub.services.broadcaster import Broadcaster
from demohub.services.classifier import (
    ClassifiedEvent,
    ConversationLifecycle,
    CTAClick,
    PerceptionAnalysis,
    ProductInterest,
    QualificationData,
    ToolCall,
    TranscriptReady,
    Unknown,
    VideoShowcase,
)
from demohub.services.event_store import EventStore
from demohub.models.demo import utcnow

logger = structlog.get_logger()

VIDEO_TOOLS = frozenset({"fetch_video", "play_video"})
_NEEDS_CONVERSATION = (QualificationData, ProductInterest, VideoShowcase, CTAClick)


@dataclass(frozen=True)
class RouteResult:
    status: Literal["processed", "ignored"]
    error: str | None = None


def resolve_video_url(storage_url: str, base_url: str) -> str:
    if storage_url.startswith(("http://", "https://")) or not base_url:
        return storage_url
    return urljoin(base_url.rstrip("/") + "/", storage_url.lstrip("/"))


class IngestionRouter:
    def __init__(
        self,
        store: EventStore,
        broadcaster: Broadcaster,
        video_base_url: str = "",
    ) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self.video_base_url = video_base_url

    async def route(self, event: ClassifiedEvent) -> RouteResult:
        if isinstance(event, _NEEDS_CONVERSATION) and not event.conversation_id:
            raise MalformedPayload(f"conversation_id is required for {event.event_type}")

        log = logger.bind(
            event_kind=type(event).__name__,
            event_type=event.event_type,
            conversation_id=event.conversation_id,
        )
        try:
            result = await self._dispatch(event)
        except SQLAlchemyError as exc:
            await self.store.rollback()
            log.error("webhook_persistence_failed", error=str(exc))
            return RouteResult(status="processed", error="persistence_failed")

        log.info("webhook_routed", status=result.status, error=result.error)
        return result

    async def _dispatch(self, event: ClassifiedEvent) -> RouteResult:
        match event:
            case ConversationLifecycle():
                return await self._handle_lifecycle(event)
            case ToolCall():
                return await self._handle_tool_call(event)
            case QualificationData():
                return await self._handle_qualification(event)
            case ProductInterest():
                return await self._handle_product_interest(event)
            case VideoShowcase():
                return await self._handle_video_showcase(event)
            case CTAClick():
                return await self._handle_cta_click(event)
            case PerceptionAnalysis():
                return await self._handle_perception(event)
            case TranscriptReady():
                return await self._handle_transcript(event)
            case Unknown():
                return RouteResult(status="ignored")
        return RouteResult(status="ignored", error="unsupported_event")

    async def _resolve_demo_id(self, event: ClassifiedEvent) -> str | None:
        if event.demo_id:
            return event.demo_id
        if not event.conversation_id:
            return None
        demo = await self.store.find_demo_by_conversation(event.conversation_id)
        return demo.id if demo is not None else None

    async def _publish_analytics(self, demo_id: str | None, event: ClassifiedEvent) -> None:
        if demo_id is None:
            return
        await self.broadcaster.publish(
            demo_id,
            "analytics_updated",
            {"conversation_id": event.conversation_id, "event_type": event.event_type},
        )

    async def _handle_lifecycle(self, event: ConversationLifecycle) -> RouteResult:
        if not event.conversation_id:
            return RouteResult(status="ignored", error="missing_conversation_id")
        demo_id = await self._resolve_demo_id(event)
        if event.phase == "started":
            # Inserted as active; a late start never reopens an ended conversation
            await self.store.upsert_conversation(event.conversation_id, demo_id)
            return RouteResult(status="processed")

        await self.store.upsert_conversation(
            event.conversation_id, demo_id, status="ended", completed_at=utcnow()
        )
        # An empty shutdown payload must not clobber an earlier perception entry
        if demo_id is not None and event.analytics:
            await self.store.merge_demo_analytics(demo_id, event.conversation_id, event.analytics)
        await self._publish_analytics(demo_id, event)
        return RouteResult(status="processed")

    async def _handle_tool_call(self, event: ToolCall) -> RouteResult:
        if event.tool_name is None:
            return RouteResult(status="ignored")
        if not event.conversation_id:
            return RouteResult(status="ignored", error="missing_conversation_id")
        if event.tool_name in VIDEO_TOOLS and event.video_title:
            return await self._handle_fetch_video(event)
        if event.tool_name == "show_trial_cta":
            return await self._handle_show_trial_cta(event)
        # Player controls are handled client-side
        return RouteResult(status="ignored")

    async def _handle_fetch_video(self, event: ToolCall) -> RouteResult:
        title = event.video_title
        demo_id = await self._resolve_demo_id(event)
        if demo_id is None:
            logger.warning("webhook_demo_not_found", conversation_id=event.conversation_id)
            return RouteResult(status="ignored", error="demo_not_found")

        video = await self.store.find_video(demo_id, title)
        if video is None:
            available = await self.store.list_video_titles(demo_id)
            logger.warning(
                "webhook_video_not_found",
                demo_id=demo_id,
                video_title=title,
                available=available,
            )
            return RouteResult(status="ignored", error="video_not_found")

        await self.store.merge_video_showcase(
            event.conversation_id, demo_id, videos_shown=[title], objective_name="video_showcase"
        )
        url = resolve_video_url(video.storage_url, self.video_base_url)
        await self.broadcaster.publish(demo_id, "play_video", {"url": url})
        return RouteResult(status="processed")

    async def _handle_show_trial_cta(self, event: ToolCall) -> RouteResult:
        demo = None
        if event.demo_id:
            demo = await self.store.get_demo(event.demo_id)
        if demo is None:
            demo = await self.store.find_demo_by_conversation(event.conversation_id)
        if demo is None:
            logger.warning("webhook_demo_not_found", conversation_id=event.conversation_id)
            return RouteResult(status="ignored", error="demo_not_found")

        await self.store.track_cta_shown(event.conversation_id, demo.id, demo.cta_button_url)
        await self.broadcaster.publish(
            demo.id,
            "show_trial_cta",
            {
                "cta_title": demo.cta_title,
                "cta_message": demo.cta_message,
                "cta_button_text": demo.cta_button_text,
                "cta_button_url": demo.cta_button_url,
            },
        )
        return RouteResult(status="processed")

    async def _handle_qualification(self, event: QualificationData) -> RouteResult:
        demo_id = await self._resolve_demo_id(event)
        await self.store.upsert_conversation(event.conversation_id, demo_id)
        await self.store.upsert_qualification(
            conversation_id=event.conversation_id,
            demo_id=demo_id,
            objective_name=event.objective_name,
            first_name=event.first_name,
            last_name=event.last_name,
            email=event.email,
            position=event.position,
            event_type=event.event_type,
            raw_payload=event.raw,
        )
        return RouteResult(status="processed")

    async def _handle_product_interest(self, event: ProductInterest) -> RouteResult:
        demo_id = await self._resolve_demo_id(event)
        await self.store.upsert_conversation(event.conversation_id, demo_id)
        await self.store.upsert_product_interest(
            conversation_id=event.conversation_id,
            demo_id=demo_id,
            objective_name=event.objective_name,
            primary_interest=event.primary_interest,
            pain_points=event.pain_points,
            event_type=event.event_type,
            raw_payload=event.raw,
        )
        return RouteResult(status="processed")

    async def _handle_video_showcase(self, event: VideoShowcase) -> RouteResult:
        demo_id = await self._resolve_demo_id(event)
        await self.store.upsert_conversation(event.conversation_id, demo_id)
        await self.store.merge_video_showcase(
            event.conversation_id,
            demo_id,
            videos_shown=event.videos_shown,
            requested_videos=event.requested_videos,
            objective_name=event.objective_name,
            event_type=event.event_type,
            raw_payload=event.raw,
        )
        return RouteResult(status="processed")

    async def _handle_cta_click(self, event: CTAClick) -> RouteResult:
        demo_id = await self._resolve_demo_id(event)
        await self.store.track_cta_click(
            event.conversation_id,
            demo_id,
            event.cta_url,
            event.user_agent,
            event.ip_address,
        )
        return RouteResult(status="processed")

    async def _handle_perception(self, event: PerceptionAnalysis) -> RouteResult:
        if not event.conversation_id:
            return RouteResult(status="ignored", error="missing_conversation_id")
        if event.analysis is None:
            return RouteResult(status="ignored", error="empty_analysis")
        demo_id = await self._resolve_demo_id(event)
        await self.store.upsert_conversation(
            event.conversation_id, demo_id, perception_analysis=event.analysis
        )
        if demo_id is not None:
            await self.store.merge_demo_analytics(demo_id, event.conversation_id, event.analysis)
        await self._publish_analytics(demo_id, event)
        return RouteResult(status="processed")

    async def _handle_transcript(self, event: TranscriptReady) -> RouteResult:
        if not event.conversation_id:
            return RouteResult(status="ignored", error="missing_conversation_id")
        if event.transcript is None:
            return RouteResult(status="ignored", error="empty_transcript")
        demo_id = await self._resolve_demo_id(event)
        await self.store.upsert_conversation(
            event.conversation_id, demo_id, transcript=event.transcript
        )
        await self._publish_analytics(demo_id, event)
        return RouteResult(status="processed")
