from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .registrations import registered_event_ids


def _unregistered_events_query(db: Session, excluded_ids: list[int]):
    query = db.query(models.Event)
    if excluded_ids:
        query = query.filter(~models.Event.id.in_(excluded_ids))
    return query


def recommend_events(db: Session, *, student_id: int, fallback_limit: int | None = None) -> list[models.Event]:
    """Interest matches by popularity, else the most popular events overall.

    Events the student already registered for are never returned.
    """
    student = db.query(models.User).filter(models.User.id == student_id).first()
    if student is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    excluded_ids = registered_event_ids(db, student_id=student_id)
    interests = [tag for tag in (student.interests or []) if isinstance(tag, str)]

    events: list[models.Event] = []
    if interests:
        events = (
            _unregistered_events_query(db, excluded_ids)
            .filter(models.Event.category.in_(interests))
            .order_by(models.Event.registered_count.desc(), models.Event.id)
            .all()
        )

    if not events:
        limit = fallback_limit if fallback_limit is not None else settings.recommendation_fallback_limit
        events = (
            _unregistered_events_query(db, excluded_ids)
            .order_by(models.Event.registered_count.desc(), models.Event.id)
            .limit(limit)
            .all()
        )
    return events
