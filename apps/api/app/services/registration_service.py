from __future__ import annotations

from typing import Any

import structlog
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Attendee, Event
from app.models.attendee import UNIQUE_EVENT_EMAIL
from app.services.error_codes import ErrorCode
from app.services.event_query import escape_like
from app.services.exceptions import (
    CapacityExceededError,
    DuplicateEmailError,
    NotFoundError,
    ValidationError,
)
from app.services.pagination import Page, paginate

logger = structlog.get_logger(__name__)

MAX_FIELD_LENGTH = 255
DEFAULT_ATTENDEES_PER_PAGE = 15

_email_adapter = TypeAdapter(EmailStr)


def clean_email(email: Any) -> str | None:
    """Trim surrounding whitespace; casing is kept for display."""
    if not isinstance(email, str):
        return None
    return email.strip() or None


def _not_found() -> NotFoundError:
    return NotFoundError(ErrorCode.EVENT_NOT_FOUND.value, "Event not found")


def _duplicate_email() -> DuplicateEmailError:
    return DuplicateEmailError(
        ErrorCode.EMAIL_ALREADY_REGISTERED.value,
        "The given data was invalid.",
        errors={"email": ["This email is already registered for the event."]},
    )


def _event_full() -> CapacityExceededError:
    return CapacityExceededError(ErrorCode.EVENT_FULL.value, "Event has reached maximum capacity")


def _email_taken(db: Session, event_id: int, email: str) -> bool:
    return bool(
        db.scalar(
            select(func.count())
            .select_from(Attendee)
            .where(Attendee.event_id == event_id, func.lower(Attendee.email) == email.lower())
        )
    )


def _event_exists(db: Session, event_id: int) -> bool:
    return db.scalar(select(Event.id).where(Event.id == event_id)) is not None


def _is_duplicate_registration(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    # PostgreSQL and SQLite both name the violated index in the driver message.
    return UNIQUE_EVENT_EMAIL in message


def _input_errors(name: Any, email: str | None) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}

    if not isinstance(name, str) or not name.strip():
        errors["name"] = ["Attendee name is required."]
    elif len(name.strip()) > MAX_FIELD_LENGTH:
        errors["name"] = [f"The name may not be greater than {MAX_FIELD_LENGTH} characters."]

    if not email:
        errors["email"] = ["Attendee email is required."]
    elif len(email) > MAX_FIELD_LENGTH:
        errors["email"] = [f"The email may not be greater than {MAX_FIELD_LENGTH} characters."]
    else:
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            errors["email"] = ["Please provide a valid email address."]

    return errors


def register_attendee(db: Session, event_id: int, name: Any, email: Any) -> Attendee:
    """Register one attendee and take one seat, atomically.

    Checks run in a fixed order: event exists, email not yet registered for
    the event, a seat is left, input is well-formed. The seat is taken with a
    guarded UPDATE so concurrent registrations for the same event serialize on
    the event row and can never push current_attendees past max_capacity. The
    unique index on (event_id, lower(email)) settles races between identical
    registrations; any other integrity failure is re-raised.
    """
    email_value = clean_email(email)

    event = db.get(Event, event_id)
    if not event:
        raise _not_found()

    if email_value and _email_taken(db, event_id, email_value):
        raise _duplicate_email()

    if not event.has_available_capacity():
        raise _event_full()

    errors = _input_errors(name, email_value)
    if errors:
        raise ValidationError(
            ErrorCode.VALIDATION_FAILED.value, "The given data was invalid.", errors=errors
        )

    try:
        result = db.execute(
            update(Event)
            .where(Event.id == event_id, Event.current_attendees < Event.max_capacity)
            .values(current_attendees=Event.current_attendees + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            if not _event_exists(db, event_id):
                logger.info("registration_rejected", event_id=event_id, reason="event_gone")
                raise _not_found()
            logger.info("registration_rejected", event_id=event_id, reason="capacity")
            raise _event_full()

        attendee = Attendee(event_id=event_id, name=name.strip(), email=email_value)
        db.add(attendee)
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not _is_duplicate_registration(exc):
            logger.exception("registration_failed", event_id=event_id)
            raise
        logger.info("registration_rejected", event_id=event_id, reason="duplicate_email")
        raise _duplicate_email() from exc
    except SQLAlchemyError:
        db.rollback()
        logger.exception("registration_failed", event_id=event_id)
        raise

    db.refresh(attendee)
    logger.info("attendee_registered", event_id=event_id, attendee_id=attendee.id)
    return attendee


def list_attendees(
    db: Session,
    event_id: int,
    *,
    search_for: str | None = None,
    page: int = 1,
    per_page: int = DEFAULT_ATTENDEES_PER_PAGE,
) -> tuple[Event, Page[Attendee]]:
    event = db.get(Event, event_id)
    if not event:
        raise _not_found()

    stmt = select(Attendee).where(Attendee.event_id == event_id)
    term = search_for.strip() if search_for else ""
    if term:
        like = f"%{escape_like(term)}%"
        stmt = stmt.where(
            Attendee.name.ilike(like, escape="\\") | Attendee.email.ilike(like, escape="\\")
        )
    stmt = stmt.order_by(Attendee.created_at.desc(), Attendee.id.desc())

    return event, paginate(db, stmt, page=page, per_page=per_page)
