import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from demohub.models.demo import Base, JSONType, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class QualificationData(Base):
    __tablename__ = "qualification_data"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(String(128), nullable=False)
    demo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    objective_name: Mapped[str] = mapped_column(String(100), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    raw_payload: Mapped[dict] = mapped_column(JSONType, default=dict)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "objective_name", name="uq_qualification_conversation_objective"
        ),
    )


class ProductInterestData(Base):
    __tablename__ = "product_interest_data"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(String(128), nullable=False)
    demo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    objective_name: Mapped[str] = mapped_column(String(100), nullable=False)
    primary_interest: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    pain_points: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    raw_payload: Mapped[dict] = mapped_column(JSONType, default=dict)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "conversation_id", "objective_name", name="uq_interest_conversation_objective"
        ),
    )


class VideoShowcaseData(Base):
    __tablename__ = "video_showcase_data"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    demo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    objective_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requested_videos: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    videos_shown: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    raw_payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class CtaTracking(Base):
    __tablename__ = "cta_tracking"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    demo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    cta_shown_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cta_clicked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cta_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
