from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.responses import created_response, paginated, success_response
from app.api.v1.schemas import AttendeeOut, AttendeeRegister, EventSummaryOut
from app.db import get_db
from app.services import list_attendees, register_attendee
from app.services.pagination import clamp_page, clamp_per_page
from app.services.registration_service import DEFAULT_ATTENDEES_PER_PAGE

router = APIRouter(prefix="/events", tags=["attendees"])

DBSession = Annotated[Session, Depends(get_db)]


@router.post("/{event_id}/register", status_code=201)
def register_attendee_endpoint(event_id: int, payload: AttendeeRegister, db: DBSession):
    attendee = register_attendee(db, event_id, payload.name, payload.email)
    return created_response(
        AttendeeOut.from_attendee(attendee).model_dump(), "Attendee registered successfully"
    )


@router.get("/{event_id}/attendees")
def list_attendees_endpoint(
    event_id: int,
    db: DBSession,
    search_for: str | None = None,
    per_page: str | None = None,
    page: str | None = None,
):
    event, result = list_attendees(
        db,
        event_id,
        search_for=search_for,
        page=clamp_page(page),
        per_page=clamp_per_page(per_page, DEFAULT_ATTENDEES_PER_PAGE),
    )
    items = [AttendeeOut.from_attendee(attendee).model_dump() for attendee in result.items]
    summary = EventSummaryOut(
        id=event.id,
        name=event.name,
        current_attendees=event.current_attendees,
        max_capacity=event.max_capacity,
        available_capacity=event.available_capacity,
    )
    return success_response(
        paginated(result, items, event=summary.model_dump()),
        "Attendees retrieved successfully",
    )
