"""ParticipationRequest ORM model."""
import enum
from sqlalchemy import Column, DateTime, Integer, ForeignKey, Index, Enum as SAEnum, text
from sqlalchemy.orm import relationship
from eventhub.database import Base


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class ParticipationRequest(Base):
    __tablename__ = "participation_requests"
    __table_args__ = (
        # One live request per (event, requester); canceled ones may be re-filed.
        Index(
            "uq_request_active",
            "event_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status <> 'CANCELED'"),
            sqlite_where=text("status <> 'CANCELED'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(SAEnum(RequestStatus), nullable=False, default=RequestStatus.PENDING)
    created = Column(DateTime(timezone=True), nullable=False)

    event = relationship("Event")


class ModerationDecision(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"
