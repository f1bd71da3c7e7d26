from __future__ import annotations

from datetime import datetime, tzinfo

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from app.core.timezones import UTC, to_display, to_utc, utcnow
from app.models import Event

MAX_CAPACITY = 10000
MAX_TEXT_LENGTH = 255


def _required_text(value: str, info: ValidationInfo) -> str:
    value = value.strip()
    if not value:
        raise PydanticCustomError(
            "required", "The {field} field is required.", {"field": info.field_name}
        )
    if len(value) > MAX_TEXT_LENGTH:
        raise PydanticCustomError(
            "too_long",
            "The {field} may not be greater than {limit} characters.",
            {"field": info.field_name, "limit": MAX_TEXT_LENGTH},
        )
    return value


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class EventCreate(SchemaBase):
    name: str
    location: str
    start_time: datetime
    end_time: datetime
    max_capacity: int

    @field_validator("name", "location", mode="after")
    @classmethod
    def _validate_text(cls, value: str, info: ValidationInfo) -> str:
        return _required_text(value, info)

    @field_validator("start_time", mode="after")
    @classmethod
    def _validate_start_time(cls, value: datetime) -> datetime:
        # Naive input is wall-clock time in the default display zone.
        value = to_utc(value)
        if value <= utcnow():
            raise PydanticCustomError("start_time_past", "Start time must be in the future.")
        return value

    @field_validator("end_time", mode="after")
    @classmethod
    def _validate_end_time(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = to_utc(value)
        start_time = info.data.get("start_time")
        if start_time is not None and value <= start_time:
            raise PydanticCustomError("end_before_start", "End time must be after start time.")
        return value

    @field_validator("max_capacity", mode="after")
    @classmethod
    def _validate_max_capacity(cls, value: int) -> int:
        if value < 1:
            raise PydanticCustomError("capacity_too_small", "Maximum capacity must be at least 1.")
        if value > MAX_CAPACITY:
            raise PydanticCustomError(
                "capacity_too_large",
                "Maximum capacity cannot exceed {limit}.",
                {"limit": MAX_CAPACITY},
            )
        return value


class EventOut(SchemaBase):
    """An event with every instant rendered in one display zone."""

    id: int
    name: str
    location: str | None = None
    start_time: str
    end_time: str
    max_capacity: int
    current_attendees: int
    available_capacity: int
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_event(cls, event: Event, zone: tzinfo = UTC) -> EventOut:
        return cls(
            id=event.id,
            name=event.name,
            location=event.location,
            start_time=to_display(event.start_time, zone),
            end_time=to_display(event.end_time, zone),
            max_capacity=event.max_capacity,
            current_attendees=event.current_attendees,
            available_capacity=event.available_capacity,
            created_at=to_display(event.created_at, zone),
            updated_at=to_display(event.updated_at, zone),
        )


class EventSummaryOut(SchemaBase):
    id: int
    name: str
    current_attendees: int
    max_capacity: int
    available_capacity: int
