from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, IntegerPrimaryKeyMixin, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from app.models.attendee import Attendee


class Event(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("max_capacity >= 1", name="ck_events_max_capacity_positive"),
        CheckConstraint("current_attendees >= 0", name="ck_events_current_attendees_non_negative"),
        CheckConstraint(
            "current_attendees <= max_capacity", name="ck_events_current_attendees_within_capacity"
        ),
        CheckConstraint("end_time > start_time", name="ck_events_end_after_start"),
        Index("ix_events_start_time", "start_time"),
        Index("ix_events_location", "location"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_attendees: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    # Attendees are removed by the FK cascade, never through the ORM.
    attendees: Mapped[list[Attendee]] = relationship(
        back_populates="event",
        passive_deletes=True,
    )

    @property
    def available_capacity(self) -> int:
        return self.max_capacity - self.current_attendees

    def has_available_capacity(self) -> bool:
        return self.current_attendees < self.max_capacity
