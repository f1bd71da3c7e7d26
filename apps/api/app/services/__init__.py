from app.services.events_service import create_event, get_event, list_events, list_locations
from app.services.registration_service import list_attendees, register_attendee

__all__ = [
    "create_event",
    "get_event",
    "list_events",
    "list_locations",
    "register_attendee",
    "list_attendees",
]
