"""Event lifecycle: submission, edits, state transitions and event reads.

State machine::

    PENDING --PUBLISH_EVENT (admin)--> PUBLISHED
    PENDING --REJECT_EVENT (admin)---> CANCELED
    PENDING <--SEND_TO_REVIEW / CANCEL_REVIEW (organizer)--> CANCELED

PUBLISHED is terminal. Organizers may only edit PENDING or CANCELED events;
admins may edit any event. Lead times (hours between now and event_date)
come from settings.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from eventhub.clock import as_utc, utc_now
from eventhub.config import settings
from eventhub.exceptions import ConflictError, NotFoundError, ValidationError, WrongStateError
from eventhub.models.category import Category
from eventhub.models.event import AdminStateAction, Event, EventState, OrganizerStateAction
from eventhub.services.request_service import count_confirmed, get_user, lock_event, write_confirmed_count
from eventhub.services.views_service import ViewsAggregator, event_uri

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("title", "annotation", "description")
_PLAIN_FIELDS = ("paid", "participant_limit", "request_moderation")


def _get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError(f"Category with id={category_id} was not found")
    return category


def _get_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    return event


def _get_own_event(db: Session, user_id: int, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id, Event.initiator_id == user_id).first()
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    return event


def _check_lead_time(event_date: datetime, hours: int) -> None:
    if as_utc(event_date) < utc_now() + timedelta(hours=hours):
        raise ValidationError(f"Event date must be at least {hours}h from now: {event_date.isoformat()}")


def _apply_patch(db: Session, event: Event, updates: dict[str, Any]) -> None:
    """Copy set fields onto the event; blank strings leave text untouched."""
    for name in _TEXT_FIELDS:
        value = updates.get(name)
        if value is not None and value.strip():
            setattr(event, name, value)
    for name in _PLAIN_FIELDS:
        if updates.get(name) is not None:
            setattr(event, name, updates[name])
    if updates.get("category_id") is not None:
        event.category_id = _get_category(db, updates["category_id"]).id
    if updates.get("location") is not None:
        event.location_lat = updates["location"]["lat"]
        event.location_lon = updates["location"]["lon"]
    if updates.get("event_date") is not None:
        event.event_date = as_utc(updates["event_date"])


# ── Transitions ────────────────────────────────────────────────────
def _send_to_review(event: Event) -> None:
    event.state = EventState.PENDING


def _cancel_review(event: Event) -> None:
    event.state = EventState.CANCELED


def _publish(event: Event) -> None:
    if event.state != EventState.PENDING:
        raise WrongStateError(f"Cannot publish the event because it's not in the right state: {event.state.value}")
    if as_utc(event.event_date) < utc_now() + timedelta(hours=settings.ADMIN_LEAD_TIME_HOURS):
        raise ConflictError(
            f"Cannot publish the event: it starts less than {settings.ADMIN_LEAD_TIME_HOURS}h from now"
        )
    event.state = EventState.PUBLISHED
    event.published_on = utc_now()


def _reject(event: Event) -> None:
    if event.state == EventState.PUBLISHED:
        raise WrongStateError("Cannot reject the event because it's already published")
    event.state = EventState.CANCELED


ORGANIZER_TRANSITIONS: dict[OrganizerStateAction, Callable[[Event], None]] = {
    OrganizerStateAction.SEND_TO_REVIEW: _send_to_review,
    OrganizerStateAction.CANCEL_REVIEW: _cancel_review,
}

ADMIN_TRANSITIONS: dict[AdminStateAction, Callable[[Event], None]] = {
    AdminStateAction.PUBLISH_EVENT: _publish,
    AdminStateAction.REJECT_EVENT: _reject,
}

def _check_handlers() -> None:
    for table, actions in ((ORGANIZER_TRANSITIONS, OrganizerStateAction), (ADMIN_TRANSITIONS, AdminStateAction)):
        missing = set(actions) - set(table)
        if missing:
            raise RuntimeError(f"No transition handler for {sorted(a.value for a in missing)}")


_check_handlers()


def _organizer_transition(event: Event, action: OrganizerStateAction) -> None:
    if event.state == EventState.PUBLISHED:
        raise WrongStateError("Only pending or canceled events can be changed")
    ORGANIZER_TRANSITIONS[action](event)


# ── Organizer operations ───────────────────────────────────────────
def submit_event(db: Session, user_id: int, data: dict[str, Any]) -> Event:
    """Create a PENDING event owned by ``user_id``."""
    initiator = get_user(db, user_id)
    category = _get_category(db, data["category_id"])
    _check_lead_time(data["event_date"], settings.ORGANIZER_LEAD_TIME_HOURS)

    event = Event(
        title=data["title"],
        annotation=data["annotation"],
        description=data["description"],
        category_id=category.id,
        initiator_id=initiator.id,
        location_lat=data["location"]["lat"],
        location_lon=data["location"]["lon"],
        paid=data.get("paid", False),
        participant_limit=data.get("participant_limit", 0),
        request_moderation=data.get("request_moderation", True),
        state=EventState.PENDING,
        event_date=as_utc(data["event_date"]),
        created_on=utc_now(),
        confirmed_requests=0,
        version=1,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by user %s", event.title, event.id, user_id)
    return event


def get_user_events(db: Session, user_id: int, offset: int = 0, size: int = 10) -> list[Event]:
    get_user(db, user_id)
    return (
        db.query(Event)
        .filter(Event.initiator_id == user_id)
        .order_by(Event.id)
        .offset(offset)
        .limit(size)
        .all()
    )


def get_user_event(db: Session, user_id: int, event_id: int) -> Event:
    get_user(db, user_id)
    return _get_own_event(db, user_id, event_id)


def organizer_edit_event(
    db: Session,
    user_id: int,
    event_id: int,
    updates: dict[str, Any],
    state_action: Optional[OrganizerStateAction] = None,
) -> Event:
    """Patch an unpublished event, optionally sending it to or withdrawing it from review."""
    get_user(db, user_id)
    event = _get_own_event(db, user_id, event_id)

    if event.state not in (EventState.PENDING, EventState.CANCELED):
        raise WrongStateError("Only pending or canceled events can be changed")
    if updates.get("event_date") is not None:
        _check_lead_time(updates["event_date"], settings.ORGANIZER_LEAD_TIME_HOURS)

    _apply_patch(db, event, updates)
    if state_action is not None:
        _organizer_transition(event, state_action)

    db.commit()
    db.refresh(event)
    logger.info("Organizer %s updated event %s (state %s)", user_id, event_id, event.state.value)
    return event


def organizer_transition_event(
    db: Session, user_id: int, event_id: int, action: OrganizerStateAction
) -> Event:
    get_user(db, user_id)
    event = _get_own_event(db, user_id, event_id)
    _organizer_transition(event, action)
    db.commit()
    db.refresh(event)
    logger.info("Organizer %s applied %s to event %s", user_id, action.value, event_id)
    return event


# ── Admin operations ───────────────────────────────────────────────
def admin_edit_event(
    db: Session,
    event_id: int,
    updates: dict[str, Any],
    state_action: Optional[AdminStateAction] = None,
) -> Event:
    """Patch any event; a state action is applied after the field changes.

    Runs under the same per-event lock and version guard as request writes,
    so a new limit is checked against the live confirmed count and a
    concurrent counter writer fails instead of interleaving.
    """
    event = lock_event(db, event_id)

    if updates.get("event_date") is not None:
        _check_lead_time(updates["event_date"], settings.ADMIN_LEAD_TIME_HOURS)
    confirmed = count_confirmed(db, event.id)
    new_limit = updates.get("participant_limit")
    if new_limit and new_limit < confirmed:
        raise ConflictError(f"Participant limit {new_limit} is below the {confirmed} already confirmed")

    _apply_patch(db, event, updates)
    if state_action is not None:
        ADMIN_TRANSITIONS[state_action](event)

    write_confirmed_count(db, event, confirmed)
    db.commit()
    db.refresh(event)
    logger.info("Admin updated event %s (state %s)", event_id, event.state.value)
    return event


def admin_transition_event(db: Session, event_id: int, action: AdminStateAction) -> Event:
    event = _get_event(db, event_id)
    ADMIN_TRANSITIONS[action](event)
    db.commit()
    db.refresh(event)
    logger.info("Admin applied %s to event %s", action.value, event_id)
    return event


def admin_search(
    db: Session,
    users: Optional[list[int]] = None,
    states: Optional[list[EventState]] = None,
    categories: Optional[list[int]] = None,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    offset: int = 0,
    size: int = 10,
) -> list[Event]:
    query = db.query(Event)
    if users:
        query = query.filter(Event.initiator_id.in_(users))
    if states:
        query = query.filter(Event.state.in_(states))
    if categories:
        query = query.filter(Event.category_id.in_(categories))
    if range_start:
        query = query.filter(Event.event_date >= as_utc(range_start))
    if range_end:
        query = query.filter(Event.event_date <= as_utc(range_end))
    return query.order_by(Event.id).offset(offset).limit(size).all()


# ── Public reads ───────────────────────────────────────────────────
def public_search(
    db: Session,
    views: ViewsAggregator,
    text: Optional[str] = None,
    categories: Optional[list[int]] = None,
    paid: Optional[bool] = None,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    only_available: bool = False,
    sort: Optional[str] = None,
    offset: int = 0,
    size: int = 10,
) -> list[tuple[Event, int]]:
    """Published events with their view counts.

    Without a date range only upcoming events are returned. ``sort`` is
    ``EVENT_DATE`` (default) or ``VIEWS`` (most viewed first).
    """
    if range_start and range_end and as_utc(range_start) > as_utc(range_end):
        raise ValidationError("range_start must not be after range_end")
    if sort not in (None, "EVENT_DATE", "VIEWS"):
        raise ValidationError(f"Unknown sort: {sort}")

    query = db.query(Event).filter(Event.state == EventState.PUBLISHED)
    if text and text.strip():
        pattern = f"%{text.strip()}%"
        query = query.filter(or_(Event.annotation.ilike(pattern), Event.description.ilike(pattern)))
    if categories:
        query = query.filter(Event.category_id.in_(categories))
    if paid is not None:
        query = query.filter(Event.paid == paid)
    if range_start is None and range_end is None:
        query = query.filter(Event.event_date > utc_now())
    if range_start:
        query = query.filter(Event.event_date >= as_utc(range_start))
    if range_end:
        query = query.filter(Event.event_date <= as_utc(range_end))
    if only_available:
        query = query.filter(or_(
            Event.participant_limit == 0,
            Event.confirmed_requests < Event.participant_limit,
        ))

    if sort == "VIEWS":
        events = query.order_by(Event.id).all()
        counts = views.views_for(events)
        ranked = sorted(events, key=lambda e: counts.get(e.id, 0), reverse=True)
        return [(e, counts.get(e.id, 0)) for e in ranked[offset:offset + size]]

    events = query.order_by(Event.event_date, Event.id).offset(offset).limit(size).all()
    counts = views.views_for(events)
    return [(e, counts.get(e.id, 0)) for e in events]


def public_get(db: Session, views: ViewsAggregator, event_id: int, client_address: str) -> tuple[Event, int]:
    """A published event; the read itself counts as a view."""
    event = db.query(Event).filter(Event.id == event_id, Event.state == EventState.PUBLISHED).first()
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    views.record_hit(event_uri(event.id), client_address, event_id=event.id)
    return event, views.views_for([event]).get(event.id, 0)
