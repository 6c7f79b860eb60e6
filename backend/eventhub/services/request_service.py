"""Participation requests: creation, cancellation and batch moderation.

Every write path that can move an event's confirmed count runs as one
transaction scoped to that event:

1. lock the event row (``SELECT ... FOR UPDATE``; a no-op on SQLite, which
   serializes writers anyway),
2. recount CONFIRMED requests from the table,
3. compute the complete new state with ``capacity``,
4. write request statuses plus the new count, the count through a
   version-guarded UPDATE so a concurrent writer on the same event makes
   this one fail with 409 instead of corrupting the counter.
"""
import logging
from typing import Any

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from eventhub.clock import utc_now
from eventhub.exceptions import ConflictError, NotFoundError
from eventhub.models.event import Event, EventState
from eventhub.models.participation_request import ModerationDecision, ParticipationRequest, RequestStatus
from eventhub.models.user import User
from eventhub.services import capacity

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with id={user_id} was not found")
    return user


def lock_event(db: Session, event_id: int) -> Event:
    # populate_existing: a row already in the identity map must not shadow the locked read.
    event = db.query(Event).filter(Event.id == event_id).with_for_update().populate_existing().first()
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    return event


def count_confirmed(db: Session, event_id: int) -> int:
    return db.query(func.count(ParticipationRequest.id)).filter(
        ParticipationRequest.event_id == event_id,
        ParticipationRequest.status == RequestStatus.CONFIRMED,
    ).scalar() or 0


def write_confirmed_count(db: Session, event: Event, confirmed: int) -> None:
    """Store the new count iff nobody else wrote this event since we read it."""
    stmt = (
        update(Event)
        .where(Event.id == event.id, Event.version == event.version)
        .values(confirmed_requests=confirmed, version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError(f"Event with id={event.id} was modified concurrently. Re-fetch and retry.")


def create_request(db: Session, user_id: int, event_id: int) -> ParticipationRequest:
    """File a participation request; auto-confirms when the event needs no moderation."""
    requester = get_user(db, user_id)
    event = lock_event(db, event_id)

    if event.initiator_id == requester.id:
        raise ConflictError("Initiator cannot request participation in their own event")
    if event.state != EventState.PUBLISHED:
        raise ConflictError("Cannot participate in an unpublished event")

    duplicate = db.query(ParticipationRequest.id).filter(
        ParticipationRequest.event_id == event.id,
        ParticipationRequest.requester_id == requester.id,
        ParticipationRequest.status != RequestStatus.CANCELED,
    ).first()
    if duplicate:
        raise ConflictError("Request already exists")

    confirmed = count_confirmed(db, event.id)
    status = capacity.initial_status(event.participant_limit, event.request_moderation, confirmed)

    request = ParticipationRequest(
        event_id=event.id,
        requester_id=requester.id,
        status=status,
        created=utc_now(),
    )
    db.add(request)
    if status == RequestStatus.CONFIRMED:
        confirmed += 1
    write_confirmed_count(db, event, confirmed)
    db.commit()
    db.refresh(request)
    logger.info(
        "Created request %s (%s) for event %s by user %s",
        request.id, request.status.value, event_id, user_id,
    )
    return request


def cancel_request(db: Session, user_id: int, request_id: int) -> ParticipationRequest:
    """Cancel the caller's own request; a confirmed one gives its slot back."""
    get_user(db, user_id)
    request = db.query(ParticipationRequest).filter(ParticipationRequest.id == request_id).first()
    if not request or request.requester_id != user_id:
        raise NotFoundError(f"Request with id={request_id} was not found")
    if request.status == RequestStatus.CANCELED:
        return request

    event = lock_event(db, request.event_id)
    # Status may have moved between the first read and taking the lock.
    db.refresh(request)
    confirmed = count_confirmed(db, event.id)
    if request.status == RequestStatus.CONFIRMED:
        confirmed -= 1
    request.status = RequestStatus.CANCELED
    write_confirmed_count(db, event, confirmed)
    db.commit()
    db.refresh(request)
    logger.info("Request %s canceled by user %s", request_id, user_id)
    return request


def get_user_requests(db: Session, user_id: int) -> list[ParticipationRequest]:
    get_user(db, user_id)
    return (
        db.query(ParticipationRequest)
        .filter(ParticipationRequest.requester_id == user_id)
        .order_by(ParticipationRequest.id)
        .all()
    )


def get_event_requests(db: Session, user_id: int, event_id: int) -> list[ParticipationRequest]:
    """All requests filed for an event, visible to its initiator only."""
    get_user(db, user_id)
    event = db.query(Event).filter(Event.id == event_id, Event.initiator_id == user_id).first()
    if not event:
        raise NotFoundError(f"Event with id={event_id} was not found")
    return (
        db.query(ParticipationRequest)
        .filter(ParticipationRequest.event_id == event_id)
        .order_by(ParticipationRequest.id)
        .all()
    )


def moderate_requests(
    db: Session,
    user_id: int,
    event_id: int,
    request_ids: list[int],
    decision: ModerationDecision,
) -> dict[str, Any]:
    """Confirm or reject a batch of pending requests, all or nothing."""
    get_user(db, user_id)
    event = lock_event(db, event_id)
    if event.initiator_id != user_id:
        raise NotFoundError(f"Event with id={event_id} was not found")

    rows = (
        db.query(ParticipationRequest)
        .filter(
            ParticipationRequest.event_id == event.id,
            or_(
                ParticipationRequest.id.in_(request_ids),
                ParticipationRequest.status == RequestStatus.PENDING,
            ),
        )
        .order_by(ParticipationRequest.id)
        .all()
    )
    by_id = {row.id: row for row in rows}
    requested = set(request_ids)

    resolution = capacity.resolve_moderation(
        limit=event.participant_limit,
        confirmed=count_confirmed(db, event.id),
        request_ids=request_ids,
        statuses={row.id: row.status for row in rows if row.id in requested},
        pending_ids=[row.id for row in rows if row.status == RequestStatus.PENDING],
        decision=decision,
    )

    for request_id in resolution.confirmed_ids:
        by_id[request_id].status = RequestStatus.CONFIRMED
    for request_id in resolution.rejected_ids:
        by_id[request_id].status = RequestStatus.REJECTED
    write_confirmed_count(db, event, resolution.confirmed_count)
    db.commit()

    logger.info(
        "Moderated event %s (%s): %d confirmed, %d rejected, confirmed total %d/%s",
        event_id, decision.value, len(resolution.confirmed_ids), len(resolution.rejected_ids),
        resolution.confirmed_count, event.participant_limit or "unlimited",
    )
    return {
        "confirmed_requests": [by_id[i] for i in resolution.confirmed_ids],
        "rejected_requests": [by_id[i] for i in resolution.rejected_ids],
    }
