"""Filter, search, sort and paginate upcoming events.

Malformed listing parameters fall back to defaults instead of failing; the
only hard error is an unknown display timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from sqlalchemy import ColumnElement, Select, and_, or_, select

from app.core.config import settings
from app.core.timezones import (
    UnknownTimezoneError,
    get_zone,
    parse_calendar_date,
    utc_day_bounds,
    utcnow,
)
from app.models import Event
from app.services.error_codes import ErrorCode
from app.services.exceptions import InvalidTimezoneError
from app.services.pagination import clamp_page, clamp_per_page

EVENT_FIELDS = ("name", "location", "start_time", "end_time", "max_capacity", "current_attendees")
TEXT_FIELDS = frozenset({"name", "location"})
NUMERIC_FIELDS = frozenset({"max_capacity", "current_attendees"})
DATETIME_FIELDS = frozenset({"start_time", "end_time"})

SORT_ORDERS = ("asc", "desc")
DEFAULT_SORT = ("start_time", "asc")
DEFAULT_SEARCH_IN = "name"
DEFAULT_PER_PAGE = 10


def resolve_zone(name: str | None) -> tuple[str, ZoneInfo]:
    tz_name = name if name is not None else settings.default_timezone
    try:
        return tz_name, get_zone(tz_name)
    except UnknownTimezoneError as exc:
        raise InvalidTimezoneError(
            ErrorCode.INVALID_TIMEZONE.value,
            "Invalid timezone provided",
            errors={"timezone": ["Timezone must be a valid IANA timezone identifier"]},
        ) from exc


def resolve_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, str]:
    """Both values must be valid, otherwise both reset to the default."""
    order = (sort_order or "asc").strip().lower()
    if sort_by not in EVENT_FIELDS or order not in SORT_ORDERS:
        return DEFAULT_SORT
    return sort_by, order


def parse_search_fields(search_in: str | None) -> tuple[str, ...]:
    raw = (search_in or DEFAULT_SEARCH_IN).strip()
    if raw == "all":
        return EVENT_FIELDS
    requested = {part.strip() for part in raw.split(",")}
    return tuple(f for f in EVENT_FIELDS if f in requested)


def parse_locations(value: str | Iterable[str] | None) -> tuple[str, ...] | None:
    if not value:
        return None
    chunks = [value] if isinstance(value, str) else list(value)
    locations: list[str] = []
    for chunk in chunks:
        for part in str(chunk).split(","):
            part = part.strip()
            if part and part not in locations:
                locations.append(part)
    return tuple(locations) or None


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"true", "1"}


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_integer(term: str) -> int | None:
    try:
        number = Decimal(term.strip())
    except InvalidOperation:
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    return int(number)


def search_clause(term: str, fields: Iterable[str]) -> ColumnElement[bool] | None:
    """OR together one predicate per searchable field.

    Fields whose type cannot interpret the term are skipped; with nothing
    left there is no clause and the search does not narrow the listing.
    """
    clauses: list[ColumnElement[bool]] = []
    number = _parse_integer(term)
    day = parse_calendar_date(term)

    for name in fields:
        column = getattr(Event, name)
        if name in TEXT_FIELDS:
            clauses.append(column.ilike(f"%{escape_like(term)}%", escape="\\"))
        elif name in NUMERIC_FIELDS:
            if number is not None:
                clauses.append(column == number)
        elif name in DATETIME_FIELDS:
            if day is not None:
                start, end = utc_day_bounds(day)
                clauses.append(and_(column >= start, column < end))

    if not clauses:
        return None
    return or_(*clauses)


@dataclass(frozen=True)
class EventFilters:
    zone: ZoneInfo
    timezone: str
    per_page: int = DEFAULT_PER_PAGE
    page: int = 1
    sort_by: str = DEFAULT_SORT[0]
    sort_order: str = DEFAULT_SORT[1]
    search_for: str | None = None
    search_in: str = DEFAULT_SEARCH_IN
    search_fields: tuple[str, ...] = (DEFAULT_SEARCH_IN,)
    locations: tuple[str, ...] | None = None
    seat_available: bool = False

    @classmethod
    def from_params(
        cls,
        *,
        timezone: str | None = None,
        per_page: Any = None,
        page: Any = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
        search_for: str | None = None,
        search_in: str | None = None,
        filter_by_location: str | Iterable[str] | None = None,
        seat_available_events: Any = None,
    ) -> EventFilters:
        tz_name, zone = resolve_zone(timezone)
        resolved_sort_by, resolved_sort_order = resolve_sort(sort_by, sort_order)
        term = search_for.strip() if search_for else None

        return cls(
            zone=zone,
            timezone=tz_name,
            per_page=clamp_per_page(per_page, DEFAULT_PER_PAGE),
            page=clamp_page(page),
            sort_by=resolved_sort_by,
            sort_order=resolved_sort_order,
            search_for=term or None,
            search_in=(search_in or DEFAULT_SEARCH_IN).strip(),
            search_fields=parse_search_fields(search_in),
            locations=parse_locations(filter_by_location),
            seat_available=parse_flag(seat_available_events),
        )

    def applied(self) -> dict[str, Any]:
        return {
            "sort_by": self.sort_by,
            "sort_order": self.sort_order,
            "search_for": self.search_for,
            "search_in": self.search_in,
            "filter_by_location": list(self.locations) if self.locations else None,
            "seat_available_events": self.seat_available,
            "timezone": self.timezone,
        }


def upcoming(now: datetime | None = None) -> Select:
    return select(Event).where(Event.start_time > (now or utcnow()))


def build_event_query(filters: EventFilters, now: datetime | None = None) -> Select:
    stmt = upcoming(now)

    if filters.locations:
        stmt = stmt.where(Event.location.in_(filters.locations))

    if filters.seat_available:
        stmt = stmt.where(Event.max_capacity > Event.current_attendees)

    if filters.search_for:
        clause = search_clause(filters.search_for, filters.search_fields)
        if clause is not None:
            stmt = stmt.where(clause)

    column = getattr(Event, filters.sort_by)
    ordering = column.desc() if filters.sort_order == "desc" else column.asc()
    return stmt.order_by(ordering, Event.id.asc())
