from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, IntegerPrimaryKeyMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.event import Event

UNIQUE_EVENT_EMAIL = "uq_attendees_event_email"


class Attendee(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "attendees"
    __table_args__ = (Index("ix_attendees_email", "email"),)

    event_id: Mapped[int] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Stored as typed; uniqueness compares lower(email).
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    event: Mapped[Event] = relationship(back_populates="attendees")


# Same email may register for many events, but only once per event in any casing.
Index(UNIQUE_EVENT_EMAIL, Attendee.event_id, func.lower(Attendee.email), unique=True)
