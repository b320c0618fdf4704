"""
Persistence handlers for ingested provider events.

Every write is an upsert on the table's natural key so that applying the same
event twice leaves a single row.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from demohub.models.captured_data import (
    CtaTracking,
    ProductInterestData,
    QualificationData,
    VideoShowcaseData,
)
from demohub.models.conversation import ConversationDetails
from demohub.models.demo import Demo, DemoVideo, utcnow


def _merge_unique(*groups: list[str] | None) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for item in group or []:
            if item and item not in merged:
                merged.append(item)
    return merged


class EventStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    async def _upsert(
        self,
        model,
        values: dict[str, Any],
        conflict_columns: list[str],
        update_columns: list[str],
        keep_existing: tuple[str, ...] = (),
    ) -> None:
        stmt = self._insert(model).values(**values)
        set_ = {}
        for column in update_columns:
            if column in keep_existing:
                # New value wins only when one was supplied
                set_[column] = func.coalesce(stmt.excluded[column], getattr(model, column))
            else:
                set_[column] = stmt.excluded[column]
        stmt = stmt.on_conflict_do_update(index_elements=conflict_columns, set_=set_)
        await self.db.execute(stmt)

    async def rollback(self) -> None:
        await self.db.rollback()

    async def find_demo_by_conversation(self, conversation_id: str) -> Demo | None:
        result = await self.db.execute(
            select(Demo).where(Demo.tavus_conversation_id == conversation_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_demo(self, demo_id: str) -> Demo | None:
        return await self.db.get(Demo, demo_id)

    async def find_video(self, demo_id: str, title: str) -> DemoVideo | None:
        result = await self.db.execute(
            select(DemoVideo).where(DemoVideo.demo_id == demo_id, DemoVideo.title == title)
        )
        return result.scalar_one_or_none()

    async def list_video_titles(self, demo_id: str) -> list[str]:
        result = await self.db.execute(
            select(DemoVideo.title).where(DemoVideo.demo_id == demo_id).order_by(DemoVideo.title)
        )
        return list(result.scalars().all())

    async def get_conversation(self, conversation_id: str) -> ConversationDetails | None:
        result = await self.db.execute(
            select(ConversationDetails).where(
                ConversationDetails.tavus_conversation_id == conversation_id
            )
        )
        return result.scalar_one_or_none()

    async def upsert_conversation(
        self,
        conversation_id: str,
        demo_id: str | None,
        status: str | None = None,
        completed_at: datetime | None = None,
        transcript: Any = None,
        perception_analysis: Any = None,
    ) -> None:
        now = utcnow()
        values = {
            "tavus_conversation_id": conversation_id,
            "demo_id": demo_id,
            "conversation_name": f"Conversation {conversation_id[-8:]}",
            "status": status or "active",
            "started_at": now,
            "completed_at": completed_at,
            "transcript": transcript,
            "perception_analysis": perception_analysis,
            "updated_at": now,
        }
        update_columns = ["demo_id", "updated_at"]
        if status is not None:
            update_columns.append("status")
        for column, value in (
            ("completed_at", completed_at),
            ("transcript", transcript),
            ("perception_analysis", perception_analysis),
        ):
            if value is not None:
                update_columns.append(column)
        await self._upsert(
            ConversationDetails,
            values,
            ["tavus_conversation_id"],
            update_columns,
            keep_existing=("demo_id",),
        )
        await self.db.commit()

    async def upsert_qualification(
        self,
        conversation_id: str,
        demo_id: str | None,
        objective_name: str,
        first_name: str | None,
        last_name: str | None,
        email: str | None,
        position: str | None,
        event_type: str,
        raw_payload: dict,
    ) -> None:
        values = {
            "conversation_id": conversation_id,
            "demo_id": demo_id,
            "objective_name": objective_name,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "position": position,
            "event_type": event_type,
            "raw_payload": raw_payload,
            "received_at": utcnow(),
        }
        await self._upsert(
            QualificationData,
            values,
            ["conversation_id", "objective_name"],
            [
                "demo_id", "first_name", "last_name", "email", "position",
                "event_type", "raw_payload", "received_at",
            ],
            keep_existing=("demo_id", "first_name", "last_name", "email", "position"),
        )
        await self.db.commit()

    async def upsert_product_interest(
        self,
        conversation_id: str,
        demo_id: str | None,
        objective_name: str,
        primary_interest: str | None,
        pain_points: list[str] | None,
        event_type: str,
        raw_payload: dict,
    ) -> None:
        values = {
            "conversation_id": conversation_id,
            "demo_id": demo_id,
            "objective_name": objective_name,
            "primary_interest": primary_interest,
            "pain_points": pain_points,
            "event_type": event_type,
            "raw_payload": raw_payload,
            "received_at": utcnow(),
        }
        await self._upsert(
            ProductInterestData,
            values,
            ["conversation_id", "objective_name"],
            ["demo_id", "primary_interest", "pain_points", "event_type", "raw_payload", "received_at"],
            keep_existing=("demo_id", "primary_interest", "pain_points"),
        )
        await self.db.commit()

    async def merge_video_showcase(
        self,
        conversation_id: str,
        demo_id: str | None,
        videos_shown: list[str] | None = None,
        requested_videos: list[str] | None = None,
        objective_name: str | None = None,
        event_type: str | None = None,
        raw_payload: dict | None = None,
    ) -> list[str]:
        now = utcnow()
        # Ensure the row exists, then lock it so concurrent merges serialise
        await self.db.execute(
            self._insert(VideoShowcaseData)
            .values(conversation_id=conversation_id, received_at=now, updated_at=now)
            .on_conflict_do_nothing(index_elements=["conversation_id"])
        )
        result = await self.db.execute(
            select(VideoShowcaseData)
            .where(VideoShowcaseData.conversation_id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one()
        shown = _merge_unique(row.videos_shown, videos_shown)
        requested = _merge_unique(row.requested_videos, requested_videos)
        row.videos_shown = shown or None
        row.requested_videos = requested or None
        for column, value in (
            ("demo_id", demo_id),
            ("objective_name", objective_name),
            ("event_type", event_type),
            ("raw_payload", raw_payload),
        ):
            if value is not None:
                setattr(row, column, value)
        row.received_at = now
        row.updated_at = now
        await self.db.commit()
        return shown

    async def track_cta_shown(
        self, conversation_id: str, demo_id: str, cta_url: str | None
    ) -> None:
        now = utcnow()
        await self._upsert(
            CtaTracking,
            {
                "conversation_id": conversation_id,
                "demo_id": demo_id,
                "cta_shown_at": now,
                "cta_url": cta_url,
                "updated_at": now,
            },
            ["conversation_id"],
            ["demo_id", "cta_shown_at", "cta_url", "updated_at"],
            keep_existing=("demo_id", "cta_url"),
        )
        await self.db.commit()

    async def track_cta_click(
        self,
        conversation_id: str,
        demo_id: str | None,
        cta_url: str | None,
        user_agent: str | None,
        ip_address: str | None,
    ) -> None:
        now = utcnow()
        await self._upsert(
            CtaTracking,
            {
                "conversation_id": conversation_id,
                "demo_id": demo_id,
                "cta_clicked_at": now,
                "cta_url": cta_url,
                "user_agent": user_agent,
                "ip_address": ip_address,
                "updated_at": now,
            },
            ["conversation_id"],
            ["demo_id", "cta_clicked_at", "cta_url", "user_agent", "ip_address", "updated_at"],
            keep_existing=("demo_id", "cta_url", "user_agent", "ip_address"),
        )
        await self.db.commit()

    async def merge_demo_analytics(
        self, demo_id: str, conversation_id: str, perception: Any
    ) -> None:
        result = await self.db.execute(
            select(Demo)
            .where(Demo.id == demo_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        demo = result.scalar_one_or_none()
        if demo is None:
            return
        now = utcnow().isoformat()
        metadata = dict(demo.demo_metadata or {})
        analytics = dict(metadata.get("analytics") or {})
        conversations = dict(analytics.get("conversations") or {})
        entry = dict(conversations.get(conversation_id) or {})
        entry.update({"perception": perception, "updated_at": now})
        conversations[conversation_id] = entry
        analytics.update(
            {
                "last_updated": now,
                "conversations": conversations,
                "last_perception_event": perception,
            }
        )
        metadata["analytics"] = analytics
        demo.demo_metadata = metadata
        await self.db.commit()
