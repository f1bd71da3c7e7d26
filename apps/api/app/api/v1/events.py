from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.responses import created_response, paginated, success_response
from app.api.v1.schemas import EventCreate, EventOut
from app.db import get_db
from app.services import create_event, get_event, list_events, list_locations
from app.services.event_query import EventFilters, resolve_zone

router = APIRouter(prefix="/events", tags=["events"])

DBSession = Annotated[Session, Depends(get_db)]


@router.post("", status_code=201)
def create_event_endpoint(payload: EventCreate, db: DBSession):
    event = create_event(db, payload)
    return created_response(
        EventOut.from_event(event).model_dump(), "Event created successfully"
    )


@router.get("")
def list_events_endpoint(
    db: DBSession,
    timezone: str | None = None,
    per_page: str | None = None,
    page: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    search_for: str | None = None,
    search_in: str | None = None,
    filter_by_location: Annotated[list[str] | None, Query()] = None,
    seat_available_events: str | None = None,
):
    # Listing parameters are read as raw strings; bad values fall back to defaults.
    filters = EventFilters.from_params(
        timezone=timezone,
        per_page=per_page,
        page=page,
        sort_by=sort_by,
        sort_order=sort_order,
        search_for=search_for,
        search_in=search_in,
        filter_by_location=filter_by_location,
        seat_available_events=seat_available_events,
    )
    result = list_events(db, filters)
    items = [EventOut.from_event(event, filters.zone).model_dump() for event in result.items]
    return success_response(
        paginated(result, items, filters_applied=filters.applied()),
        "Events retrieved successfully",
    )


@router.get("/locations")
def list_locations_endpoint(db: DBSession):
    return success_response(list_locations(db), "Locations retrieved successfully")


@router.get("/{event_id}")
def get_event_endpoint(event_id: int, db: DBSession, timezone: str | None = None):
    _, zone = resolve_zone(timezone)
    event = get_event(db, event_id)
    return success_response(
        EventOut.from_event(event, zone).model_dump(), "Event retrieved successfully"
    )
