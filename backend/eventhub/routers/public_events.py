"""Public event API routes. Every read is reported to the stats service."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.schemas.event import EventOut, to_event_out
from eventhub.services import event_service
from eventhub.services.views_service import ViewsAggregator, get_views_aggregator

logger = logging.getLogger(__name__)
router = APIRouter()


def client_address(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("", response_model=list[EventOut])
def search_events(
    request: Request,
    text: Optional[str] = Query(None),
    categories: Optional[list[int]] = Query(None),
    paid: Optional[bool] = Query(None),
    range_start: Optional[datetime] = Query(None),
    range_end: Optional[datetime] = Query(None),
    only_available: bool = Query(False),
    sort: Optional[str] = Query(None, description="EVENT_DATE or VIEWS"),
    offset: int = Query(0, ge=0, alias="from"),
    size: int = Query(10, gt=0),
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    views.record_hit(request.url.path, client_address(request))
    found = event_service.public_search(
        db, views,
        text=text,
        categories=categories,
        paid=paid,
        range_start=range_start,
        range_end=range_end,
        only_available=only_available,
        sort=sort,
        offset=offset,
        size=size,
    )
    return [to_event_out(event, count) for event, count in found]


@router.get("/{event_id}", response_model=EventOut)
def get_event(
    event_id: int,
    request: Request,
    db: Session = Depends(get_db),
    views: ViewsAggregator = Depends(get_views_aggregator),
):
    event, count = event_service.public_get(db, views, event_id, client_address(request))
    return to_event_out(event, count)
