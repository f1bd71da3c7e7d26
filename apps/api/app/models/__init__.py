from app.models.attendee import Attendee
from app.models.base import Base
from app.models.event import Event

__all__ = ["Base", "Event", "Attendee"]
