"""Participation request API routes for the requesting user."""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.schemas.participation_request import ParticipationRequestOut
from eventhub.services import request_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[ParticipationRequestOut])
def list_own_requests(user_id: int, db: Session = Depends(get_db)):
    return request_service.get_user_requests(db, user_id)


@router.post("", response_model=ParticipationRequestOut, status_code=status.HTTP_201_CREATED)
def create_request(user_id: int, event_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    """Ask to take part in a published event."""
    return request_service.create_request(db, user_id, event_id)


@router.patch("/{request_id}/cancel", response_model=ParticipationRequestOut)
def cancel_request(user_id: int, request_id: int, db: Session = Depends(get_db)):
    return request_service.cancel_request(db, user_id, request_id)
