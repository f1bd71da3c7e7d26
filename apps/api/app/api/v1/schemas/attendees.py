from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from app.core.timezones import UTC, to_display
from app.models import Attendee


class AttendeeRegister(BaseModel):
    # Content checks (blank, length, email syntax) belong to the registration
    # service so they run after the existence, duplicate and capacity checks.
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    email: str | None = None


class AttendeeOut(BaseModel):
    id: int
    event_id: int
    name: str
    email: str
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_attendee(cls, attendee: Attendee) -> AttendeeOut:
        return cls(
            id=attendee.id,
            event_id=attendee.event_id,
            name=attendee.name,
            email=attendee.email,
            created_at=to_display(attendee.created_at, UTC),
            updated_at=to_display(attendee.updated_at, UTC),
        )
