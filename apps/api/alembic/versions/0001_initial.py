"""Initial schema: events and attendees.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_capacity", sa.Integer, nullable=False),
        sa.Column("current_attendees", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("max_capacity >= 1", name="ck_events_max_capacity_positive"),
        sa.CheckConstraint(
            "current_attendees >= 0", name="ck_events_current_attendees_non_negative"
        ),
        sa.CheckConstraint(
            "current_attendees <= max_capacity",
            name="ck_events_current_attendees_within_capacity",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_events_end_after_start"),
    )
    op.create_index("ix_events_start_time", "events", ["start_time"])
    op.create_index("ix_events_location", "events", ["location"])

    op.create_table(
        "attendees",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_attendees_email", "attendees", ["email"])
    op.create_index(
        "uq_attendees_event_email",
        "attendees",
        ["event_id", sa.text("lower(email)")],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_attendees_event_email", table_name="attendees")
    op.drop_index("ix_attendees_email", table_name="attendees")
    op.drop_table("attendees")
    op.drop_index("ix_events_location", table_name="events")
    op.drop_index("ix_events_start_time", table_name="events")
    op.drop_table("events")
