"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from eventhub.models.event import AdminStateAction, EventState, OrganizerStateAction


class Location(BaseModel):
    lat: float
    lon: float


class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=120)
    annotation: str = Field(min_length=20, max_length=2000)
    description: str = Field(min_length=20, max_length=7000)
    category_id: int
    location: Location
    event_date: datetime
    paid: bool = False
    participant_limit: int = Field(default=0, ge=0)
    request_moderation: bool = True


class EventPatch(BaseModel):
    """Fields both the organizer and the admin may change; unset means untouched."""

    title: Optional[str] = Field(default=None, max_length=120)
    annotation: Optional[str] = Field(default=None, max_length=2000)
    description: Optional[str] = Field(default=None, max_length=7000)
    category_id: Optional[int] = None
    location: Optional[Location] = None
    event_date: Optional[datetime] = None
    paid: Optional[bool] = None
    participant_limit: Optional[int] = Field(default=None, ge=0)
    request_moderation: Optional[bool] = None


class EventUserUpdate(EventPatch):
    state_action: Optional[OrganizerStateAction] = None


class EventAdminUpdate(EventPatch):
    state_action: Optional[AdminStateAction] = None


class EventOut(BaseModel):
    id: int
    title: str
    annotation: str
    description: str
    category_id: int
    initiator_id: int
    location: Location
    paid: bool
    participant_limit: int
    request_moderation: bool
    state: EventState
    event_date: datetime
    created_on: datetime
    published_on: Optional[datetime] = None
    confirmed_requests: int
    views: int = 0

    model_config = {"from_attributes": True}


def to_event_out(event, views: int = 0) -> EventOut:
    """Serialize an ORM event, attaching the view count computed elsewhere."""
    return EventOut.model_validate(event).model_copy(update={"views": views})
