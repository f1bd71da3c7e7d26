"""UTC <-> display-zone conversion.

Instants are stored and compared in UTC. Every conversion to or from a
display zone goes through this module so a value is converted exactly once.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from app.core.config import settings

UTC = timezone.utc

_DATE_FORMATS = (
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
)


class UnknownTimezoneError(ValueError):
    pass


@lru_cache(maxsize=1)
def _known_zones() -> frozenset[str]:
    return frozenset(available_timezones())


@lru_cache(maxsize=256)
def get_zone(name: str) -> ZoneInfo:
    if not name or name not in _known_zones():
        raise UnknownTimezoneError(name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise UnknownTimezoneError(name) from exc


def default_zone() -> ZoneInfo:
    return get_zone(settings.default_timezone)


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_utc(value: datetime, assume: tzinfo | None = None) -> datetime:
    """Normalize an incoming datetime to aware UTC.

    Naive values are read as wall-clock time in ``assume`` (the default
    display zone when omitted).
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        value = value.replace(tzinfo=assume or default_zone())
    return value.astimezone(UTC)


def from_storage(value: datetime) -> datetime:
    """Attach UTC to a value read back from a backend that drops offsets."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_display(value: datetime | None, zone: tzinfo) -> str | None:
    if value is None:
        return None
    return from_storage(value).astimezone(zone).isoformat()


def parse_calendar_date(term: str) -> date | None:
    """Best-effort parse of a search term as a calendar date (time is dropped)."""
    raw = term.strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def utc_day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1)
