"""Event registration ledger.

A registration is accepted only when both guards hold inside one transaction:

* the event counter is bumped by a conditional ``UPDATE`` that matches only
  while ``registered_count < capacity``;
* the ``(student_id, event_id)`` row is inserted under the ``uq_registration``
  unique constraint.

If the insert trips the constraint the transaction is rolled back, which also
undoes the counter bump. Concurrent requests for the last seat or for the same
pair therefore cannot both succeed.
"""

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .logging_utils import log_event, log_warning

EVENT_NOT_FOUND = "Event not found"
EVENT_FULL = "Event is full"
ALREADY_REGISTERED = "You have already registered for this event"

# SQLite reports the columns, Postgres the constraint name.
_DUPLICATE_MARKERS = ("uq_registration", "registrations.student_id, registrations.event_id")


def is_duplicate_registration(exc: IntegrityError) -> bool:
    diag = getattr(exc.orig, "diag", None)
    if getattr(diag, "constraint_name", None) == "uq_registration":
        return True
    message = str(exc.orig)
    return any(marker in message for marker in _DUPLICATE_MARKERS)


def register_student(db: Session, *, student_id: int, event_id: int) -> models.Registration:
    event = db.query(models.Event).filter(models.Event.id == event_id).first()
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=EVENT_NOT_FOUND)

    claimed = db.execute(
        update(models.Event)
        .where(models.Event.id == event_id, models.Event.registered_count < models.Event.capacity)
        .values(registered_count=models.Event.registered_count + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        db.rollback()
        log_warning("event_registration_rejected", reason="full", event_id=event_id, student_id=student_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=EVENT_FULL)

    registration = models.Registration(student_id=student_id, event_id=event_id)
    db.add(registration)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_duplicate_registration(exc):
            raise
        log_warning("event_registration_rejected", reason="duplicate", event_id=event_id, student_id=student_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_REGISTERED)

    db.refresh(registration)
    log_event("event_registered", event_id=event_id, student_id=student_id, registration_id=registration.id)
    return registration


def registered_event_ids(db: Session, *, student_id: int) -> list[int]:
    return [
        row.event_id
        for row in db.query(models.Registration.event_id).filter(models.Registration.student_id == student_id).all()
    ]


def list_registered_events(db: Session, *, student_id: int) -> list[models.Event]:
    return (
        db.query(models.Event)
        .join(models.Registration, models.Registration.event_id == models.Event.id)
        .filter(models.Registration.student_id == student_id)
        .order_by(models.Registration.id)
        .all()
    )
