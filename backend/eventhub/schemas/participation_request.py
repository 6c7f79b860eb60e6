"""Pydantic schemas for ParticipationRequests."""
from datetime import datetime
from pydantic import BaseModel, Field

from eventhub.models.participation_request import ModerationDecision, RequestStatus


class ParticipationRequestOut(BaseModel):
    id: int
    event_id: int
    requester_id: int
    status: RequestStatus
    created: datetime

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    request_ids: list[int] = Field(min_length=1)
    status: ModerationDecision


class StatusUpdateResult(BaseModel):
    confirmed_requests: list[ParticipationRequestOut] = []
    rejected_requests: list[ParticipationRequestOut] = []
