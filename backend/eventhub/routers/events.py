"""Organizer event API routes, delegating to event_service / request_service."""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.schemas.event import EventCreate, EventOut, EventUserUpdate, to_event_out
from eventhub.schemas.participation_request import (
    ParticipationRequestOut,
    StatusUpdateRequest,
    StatusUpdateResult,
)
from eventhub.services import event_service, request_service
from eventhub.services.views_service import ViewsAggregator, get_views_aggregator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def submit_event(user_id: int, payload: EventCreate, db: Session = Depends(get_db)):
    """Submit a new event for review (state PENDING)."""
    event = event_service.submit_event(db, user_id, payload.model_dump())
    return to_event_out(event)


@router.get("", response_model=list[EventOut])
def list_own_events(
    user_id: int,
    offset: int = Query(0, ge=0, alias="from"),
    size: int = Query(10, gt=0),
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    events = event_service.get_user_events(db, user_id, offset, size)
    counts = views.views_for(events)
    return [to_event_out(e, counts.get(e.id, 0)) for e in events]


@router.get("/{event_id}", response_model=EventOut)
def get_own_event(
    user_id: int,
    event_id: int,
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    event = event_service.get_user_event(db, user_id, event_id)
    return to_event_out(event, views.views_for([event]).get(event.id, 0))


@router.patch("/{event_id}", response_model=EventOut)
def update_own_event(
    user_id: int,
    event_id: int,
    payload: EventUserUpdate,
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    """Edit an unpublished event; ``state_action`` sends it to review or withdraws it."""
    updates = payload.model_dump(exclude_unset=True, exclude={"state_action"})
    event = event_service.organizer_edit_event(db, user_id, event_id, updates, payload.state_action)
    return to_event_out(event, views.views_for([event]).get(event.id, 0))


@router.get("/{event_id}/requests", response_model=list[ParticipationRequestOut])
def list_event_requests(user_id: int, event_id: int, db: Session = Depends(get_db)):
    return request_service.get_event_requests(db, user_id, event_id)


@router.patch("/{event_id}/requests", response_model=StatusUpdateResult)
def moderate_event_requests(
    user_id: int,
    event_id: int,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
):
    """Confirm or reject pending requests in one all-or-nothing batch."""
    result = request_service.moderate_requests(db, user_id, event_id, payload.request_ids, payload.status)
    return StatusUpdateResult(
        confirmed_requests=[ParticipationRequestOut.model_validate(r) for r in result["confirmed_requests"]],
        rejected_requests=[ParticipationRequestOut.model_validate(r) for r in result["rejected_requests"]],
    )
