"""webhook ingestion schema

Revision ID: 001_webhook_ingestion_schema
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_webhook_ingestion_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "demos",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("tavus_conversation_id", sa.String(length=128), nullable=True),
        sa.Column("cta_title", sa.String(length=255), nullable=True),
        sa.Column("cta_message", sa.String(length=1000), nullable=True),
        sa.Column("cta_button_text", sa.String(length=255), nullable=True),
        sa.Column("cta_button_url", sa.String(length=2048), nullable=True),
        sa.Column("metadata", JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_demos_tavus_conversation_id", "demos", ["tavus_conversation_id"])

    op.create_table(
        "demo_videos",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("storage_url", sa.String(length=2048), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["demo_id"], ["demos.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("demo_id", "title", name="uq_demo_video_title"),
    )
    op.create_index("ix_demo_videos_demo_id", "demo_videos", ["demo_id"])

    op.create_table(
        "conversation_details",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("tavus_conversation_id", sa.String(length=128), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=True),
        sa.Column("conversation_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transcript", JSON, nullable=True),
        sa.Column("perception_analysis", JSON, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tavus_conversation_id"),
    )
    op.create_index("ix_conversation_details_demo_id", "conversation_details", ["demo_id"])

    op.create_table(
        "qualification_data",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=True),
        sa.Column("objective_name", sa.String(length=100), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("position", sa.String(length=255), nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=True),
        sa.Column("raw_payload", JSON, nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "conversation_id", "objective_name", name="uq_qualification_conversation_objective"
        ),
    )
    op.create_index("ix_qualification_data_demo_id", "qualification_data", ["demo_id"])

    op.create_table(
        "product_interest_data",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=True),
        sa.Column("objective_name", sa.String(length=100), nullable=False),
        sa.Column("primary_interest", sa.String(length=1000), nullable=True),
        sa.Column("pain_points", JSON, nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=True),
        sa.Column("raw_payload", JSON, nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "conversation_id", "objective_name", name="uq_interest_conversation_objective"
        ),
    )
    op.create_index("ix_product_interest_data_demo_id", "product_interest_data", ["demo_id"])

    op.create_table(
        "video_showcase_data",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=True),
        sa.Column("objective_name", sa.String(length=100), nullable=True),
        sa.Column("requested_videos", JSON, nullable=True),
        sa.Column("videos_shown", JSON, nullable=True),
        sa.Column("event_type", sa.String(length=100), nullable=True),
        sa.Column("raw_payload", JSON, nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("conversation_id"),
    )
    op.create_index("ix_video_showcase_data_demo_id", "video_showcase_data", ["demo_id"])

    op.create_table(
        "cta_tracking",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("conversation_id", sa.String(length=128), nullable=False),
        sa.Column("demo_id", sa.String(length=64), nullable=True),
        sa.Column("cta_shown_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cta_clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cta_url", sa.String(length=2048), nullable=True),
        sa.Column("user_agent", sa.String(length=1000), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("conversation_id"),
    )
    op.create_index("ix_cta_tracking_demo_id", "cta_tracking", ["demo_id"])

    op.create_table(
        "processed_webhook_events",
        sa.Column("event_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )


def downgrade() -> None:
    op.drop_table("processed_webhook_events")
    op.drop_index("ix_cta_tracking_demo_id", table_name="cta_tracking")
    op.drop_table("cta_tracking")
    op.drop_index("ix_video_showcase_data_demo_id", table_name="video_showcase_data")
    op.drop_table("video_showcase_data")
    op.drop_index("ix_product_interest_data_demo_id", table_name="product_interest_data")
    op.drop_table("product_interest_data")
    op.drop_index("ix_qualification_data_demo_id", table_name="qualification_data")
    op.drop_table("qualification_data")
    op.drop_index("ix_conversation_details_demo_id", table_name="conversation_details")
    op.drop_table("conversation_details")
    op.drop_index("ix_demo_videos_demo_id", table_name="demo_videos")
    op.drop_table("demo_videos")
    op.drop_index("ix_demos_tavus_conversation_id", table_name="demos")
    op.drop_table("demos")
