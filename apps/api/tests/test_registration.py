from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import threading

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, func, select
from sqlalchemy import event as sa_event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.main import app
from app.models import Attendee, Event
from app.services import registration_service
from app.services.exceptions import NotFoundError

DUPLICATE_ERRORS = {"email": ["This email is already registered for the event."]}


def _register(client: TestClient, event_id: int, email: str, name: str = "Jane Doe"):
    return client.post(f"/api/events/{event_id}/register", json={"name": name, "email": email})


def _attendee_count(db_session, event_id: int) -> int:
    return db_session.scalar(
        select(func.count()).select_from(Attendee).where(Attendee.event_id == event_id)
    )


def _current_attendees(db_session, event_id: int) -> int:
    db_session.expire_all()
    return db_session.get(Event, event_id).current_attendees


def test_register_attendee(client: TestClient, db_session, make_event):
    event = make_event(max_capacity=10)

    resp = _register(client, event.id, "jane@example.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Attendee registered successfully"
    assert body["data"]["event_id"] == event.id
    assert body["data"]["email"] == "jane@example.com"

    assert _current_attendees(db_session, event.id) == 1
    assert _attendee_count(db_session, event.id) == 1


def test_capacity_fills_then_rejects(client: TestClient, db_session, make_event):
    event = make_event(max_capacity=3)

    for i in range(3):
        assert _register(client, event.id, f"guest{i}@example.com").status_code == 201

    resp = _register(client, event.id, "late@example.com")
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Event has reached maximum capacity"}

    assert _current_attendees(db_session, event.id) == 3
    assert _attendee_count(db_session, event.id) == 3


def test_duplicate_email_is_field_error(client: TestClient, db_session, make_event):
    event = make_event(max_capacity=10)
    assert _register(client, event.id, "dup@example.com").status_code == 201

    resp = _register(client, event.id, "  DUP@Example.com ")
    assert resp.status_code == 422
    body = resp.json()
    assert body["message"] == "The given data was invalid."
    assert body["errors"] == DUPLICATE_ERRORS

    assert _current_attendees(db_session, event.id) == 1


def test_same_email_on_two_events(client: TestClient, db_session, make_event):
    first = make_event(name="First")
    second = make_event(name="Second")

    assert _register(client, first.id, "same@example.com").status_code == 201
    assert _register(client, second.id, "same@example.com").status_code == 201


def test_unknown_event_is_checked_first(client: TestClient):
    resp = client.post("/api/events/424242/register", json={"name": "", "email": "nope"})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Event not found"


def test_duplicate_reported_before_capacity(client: TestClient, make_event):
    event = make_event(max_capacity=1)
    assert _register(client, event.id, "only@example.com").status_code == 201

    resp = _register(client, event.id, "only@example.com")
    assert resp.status_code == 422
    assert "email" in resp.json()["errors"]


def test_capacity_reported_before_input_errors(client: TestClient, make_event):
    event = make_event(max_capacity=1, current_attendees=1)

    resp = _register(client, event.id, "not-an-email", name="")
    assert resp.status_code == 409


def test_invalid_input(client: TestClient, db_session, make_event):
    event = make_event()

    resp = client.post(f"/api/events/{event.id}/register", json={"email": "bad-address"})
    assert resp.status_code == 422
    errors = resp.json()["errors"]
    assert errors["name"] == ["Attendee name is required."]
    assert errors["email"] == ["Please provide a valid email address."]

    long_name = _register(client, event.id, "ok@example.com", name="x" * 256)
    assert long_name.status_code == 422
    assert long_name.json()["errors"]["name"] == [
        "The name may not be greater than 255 characters."
    ]

    missing = client.post(f"/api/events/{event.id}/register", json={"name": "Jane"})
    assert missing.json()["errors"]["email"] == ["Attendee email is required."]

    assert _current_attendees(db_session, event.id) == 0


def test_storage_failure_rolls_back(db_session, make_event):
    event = make_event(max_capacity=5)

    def _fail_attendee_insert(session, flush_context, instances):
        if any(isinstance(obj, Attendee) for obj in session.new):
            raise OperationalError("INSERT INTO attendees", {}, Exception("disk I/O error"))

    sa_event.listen(Session, "before_flush", _fail_attendee_insert)
    try:
        client = TestClient(app, raise_server_exceptions=False)
        resp = _register(client, event.id, "boom@example.com")
    finally:
        sa_event.remove(Session, "before_flush", _fail_attendee_insert)

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert "errors" not in body

    assert _current_attendees(db_session, event.id) == 0


def test_concurrent_registrations_never_oversell(db_session, make_event):
    remaining = 3
    attempts = 8
    event_id = make_event(max_capacity=5, current_attendees=5 - remaining).id

    barrier = threading.Barrier(attempts)

    def _register_call(i: int):
        with TestClient(app) as local_client:
            barrier.wait()
            return _register(local_client, event_id, f"racer{i}@example.com")

    with ThreadPoolExecutor(max_workers=attempts) as executor:
        futures = [executor.submit(_register_call, i) for i in range(attempts)]
        responses = [f.result() for f in futures]

    statuses = [resp.status_code for resp in responses]
    assert statuses.count(201) == remaining
    assert statuses.count(409) == attempts - remaining

    assert _current_attendees(db_session, event_id) == 5
    assert _attendee_count(db_session, event_id) == remaining

def test_email_kept_as_typed(client: TestClient, db_session, make_event):
    event = make_event(max_capacity=10)

    resp = _register(client, event.id, "  Jane.Doe@Example.com ")
    assert resp.status_code == 201
    assert resp.json()["data"]["email"] == "Jane.Doe@Example.com"

    stored = db_session.scalar(select(Attendee.email).where(Attendee.event_id == event.id))
    assert stored == "Jane.Doe@Example.com"

    again = _register(client, event.id, "jane.doe@example.com")
    assert again.status_code == 422
    assert again.json()["errors"] == DUPLICATE_ERRORS


def test_unique_index_rejects_duplicate_past_precheck(
    client: TestClient, db_session, make_event, monkeypatch
):
    event = make_event(max_capacity=10)
    monkeypatch.setattr(registration_service, "_email_taken", lambda *args: False)

    assert _register(client, event.id, "twice@example.com").status_code == 201

    resp = _register(client, event.id, "Twice@Example.com")
    assert resp.status_code == 422
    assert resp.json()["errors"] == DUPLICATE_ERRORS

    assert _current_attendees(db_session, event.id) == 1
    assert _attendee_count(db_session, event.id) == 1


def test_concurrent_identical_emails_register_once(db_session, make_event, monkeypatch):
    attempts = 6
    event_id = make_event(max_capacity=50).id
    # Every racer passes the read check; only the index can tell them apart
    monkeypatch.setattr(registration_service, "_email_taken", lambda *args: False)

    barrier = threading.Barrier(attempts)

    def _register_call(_: int):
        with TestClient(app) as local_client:
            barrier.wait()
            return _register(local_client, event_id, "same@example.com")

    with ThreadPoolExecutor(max_workers=attempts) as executor:
        futures = [executor.submit(_register_call, i) for i in range(attempts)]
        responses = [f.result() for f in futures]

    statuses = [resp.status_code for resp in responses]
    assert statuses.count(201) == 1
    assert statuses.count(422) == attempts - 1
    for resp in responses:
        if resp.status_code == 422:
            assert resp.json()["errors"] == DUPLICATE_ERRORS

    assert _current_attendees(db_session, event_id) == 1
    assert _attendee_count(db_session, event_id) == 1


def test_other_integrity_errors_are_not_duplicates(db_session, make_event):
    event = make_event(max_capacity=5)

    def _fail_attendee_insert(session, flush_context, instances):
        if any(isinstance(obj, Attendee) for obj in session.new):
            raise IntegrityError(
                "INSERT INTO attendees", {}, Exception("FOREIGN KEY constraint failed")
            )

    sa_event.listen(Session, "before_flush", _fail_attendee_insert)
    try:
        client = TestClient(app, raise_server_exceptions=False)
        resp = _register(client, event.id, "fk@example.com")
    finally:
        sa_event.remove(Session, "before_flush", _fail_attendee_insert)

    assert resp.status_code == 500
    assert "errors" not in resp.json()
    assert _current_attendees(db_session, event.id) == 0


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ('duplicate key value violates unique constraint "uq_attendees_event_email"', True),
        ("UNIQUE constraint failed: index 'uq_attendees_event_email'", True),
        ("FOREIGN KEY constraint failed", False),
        ("CHECK constraint failed: ck_events_current_attendees_within_capacity", False),
    ],
)
def test_is_duplicate_registration(message: str, expected: bool):
    exc = IntegrityError("INSERT INTO attendees", {}, Exception(message))
    assert registration_service._is_duplicate_registration(exc) is expected


def test_event_removed_mid_registration_is_not_found(db_session, make_event, monkeypatch):
    event_id = make_event(max_capacity=5).id

    def _drop_event(name, email):
        db_session.execute(delete(Event).where(Event.id == event_id))
        db_session.commit()
        return {}

    monkeypatch.setattr(registration_service, "_input_errors", _drop_event)

    with pytest.raises(NotFoundError) as excinfo:
        registration_service.register_attendee(
            db_session, event_id, "Jane Doe", "gone@example.com"
        )
    assert excinfo.value.message == "Event not found"



def test_list_attendees(client: TestClient, make_event):
    event = make_event(name="Tech Summit", max_capacity=10)
    _register(client, event.id, "alice@example.com", name="Alice Smith")
    _register(client, event.id, "bob@corp.io", name="Bob Jones")
    _register(client, event.id, "carol@example.com", name="Carol White")

    resp = client.get(f"/api/events/{event.id}/attendees")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Attendees retrieved successfully"

    data = body["data"]
    assert [a["name"] for a in data["data"]] == ["Carol White", "Bob Jones", "Alice Smith"]
    assert data["pagination"]["per_page"] == 15
    assert data["pagination"]["total"] == 3
    assert data["event"] == {
        "id": event.id,
        "name": "Tech Summit",
        "current_attendees": 3,
        "max_capacity": 10,
        "available_capacity": 7,
    }

    search = client.get(
        f"/api/events/{event.id}/attendees", params={"search_for": "EXAMPLE.com"}
    ).json()["data"]
    assert {a["email"] for a in search["data"]} == {"alice@example.com", "carol@example.com"}

    paged = client.get(
        f"/api/events/{event.id}/attendees", params={"per_page": 2, "page": 2}
    ).json()["data"]
    assert [a["name"] for a in paged["data"]] == ["Alice Smith"]


def test_list_attendees_unknown_event(client: TestClient):
    resp = client.get("/api/events/31337/attendees")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Event not found"
