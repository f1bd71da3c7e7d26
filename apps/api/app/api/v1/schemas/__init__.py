from app.api.v1.schemas.attendees import AttendeeOut, AttendeeRegister
from app.api.v1.schemas.events import EventCreate, EventOut, EventSummaryOut

__all__ = [
    "AttendeeOut",
    "AttendeeRegister",
    "EventCreate",
    "EventOut",
    "EventSummaryOut",
]
