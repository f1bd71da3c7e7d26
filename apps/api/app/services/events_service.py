from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.schemas.events import EventCreate
from app.core.timezones import utcnow
from app.models import Event
from app.services.error_codes import ErrorCode
from app.services.event_query import EventFilters, build_event_query
from app.services.exceptions import NotFoundError
from app.services.pagination import Page, paginate

logger = structlog.get_logger(__name__)


def create_event(db: Session, payload: EventCreate) -> Event:
    event = Event(
        name=payload.name,
        location=payload.location,
        start_time=payload.start_time,
        end_time=payload.end_time,
        max_capacity=payload.max_capacity,
        current_attendees=0,
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info("event_created", event_id=event.id, max_capacity=event.max_capacity)
    return event


def get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "Event not found")
    return event


def list_events(db: Session, filters: EventFilters) -> Page[Event]:
    stmt = build_event_query(filters)
    return paginate(db, stmt, page=filters.page, per_page=filters.per_page)


def list_locations(db: Session) -> list[str]:
    stmt = (
        select(Event.location)
        .distinct()
        .where(
            Event.start_time > utcnow(),
            Event.location.is_not(None),
            Event.location != "",
        )
        .order_by(Event.location)
    )
    return [location for location in db.scalars(stmt).all() if location and location.strip()]
