import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from demohub.models.demo import Base, JSONType, utcnow


class ConversationDetails(Base):
    __tablename__ = "conversation_details"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tavus_conversation_id: Mapped[str] = mapped_column(
        String(128), nullable=False, unique=True
    )
    demo_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    conversation_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="active")
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    transcript: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    perception_analysis: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
