import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class Demo(Base):
    __tablename__ = "demos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tavus_conversation_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    cta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cta_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    cta_button_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cta_button_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    demo_metadata: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class DemoVideo(Base):
    __tablename__ = "demo_videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    demo_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("demos.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("demo_id", "title", name="uq_demo_video_title"),)
