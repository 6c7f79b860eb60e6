"""Admin event API routes: search and moderation of publication."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.models.event import EventState
from eventhub.schemas.event import EventAdminUpdate, EventOut, to_event_out
from eventhub.services import event_service
from eventhub.services.views_service import ViewsAggregator, get_views_aggregator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[EventOut])
def search_events(
    users: Optional[list[int]] = Query(None),
    states: Optional[list[EventState]] = Query(None),
    categories: Optional[list[int]] = Query(None),
    range_start: Optional[datetime] = Query(None),
    range_end: Optional[datetime] = Query(None),
    offset: int = Query(0, ge=0, alias="from"),
    size: int = Query(10, gt=0),
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    events = event_service.admin_search(db, users, states, categories, range_start, range_end, offset, size)
    counts = views.views_for(events)
    return [to_event_out(e, counts.get(e.id, 0)) for e in events]


@router.patch("/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventAdminUpdate,
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    """Edit any event; ``state_action`` publishes or rejects it."""
    updates = payload.model_dump(exclude_unset=True, exclude={"state_action"})
    event = event_service.admin_edit_event(db, event_id, updates, payload.state_action)
    return to_event_out(event, views.views_for([event]).get(event.id, 0))
