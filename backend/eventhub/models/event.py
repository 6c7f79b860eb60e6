"""Event ORM model."""
import enum
from sqlalchemy import Column, String, DateTime, Integer, Boolean, Float, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import relationship
from eventhub.database import Base


class EventState(str, enum.Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    CANCELED = "CANCELED"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(120), nullable=False)
    annotation = Column(String(2000), nullable=False)
    description = Column(String(7000), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    initiator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    location_lat = Column(Float, nullable=False)
    location_lon = Column(Float, nullable=False)
    paid = Column(Boolean, nullable=False, default=False)
    participant_limit = Column(Integer, nullable=False, default=0)
    request_moderation = Column(Boolean, nullable=False, default=True)
    state = Column(SAEnum(EventState), nullable=False, default=EventState.PENDING)
    event_date = Column(DateTime(timezone=True), nullable=False)
    created_on = Column(DateTime(timezone=True), nullable=False)
    published_on = Column(DateTime(timezone=True), nullable=True)
    # Read model for count(requests WHERE status = CONFIRMED); written only by request_service.
    confirmed_requests = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    category = relationship("Category")
    initiator = relationship("User")

    @property
    def location(self) -> dict:
        return {"lat": self.location_lat, "lon": self.location_lon}


class OrganizerStateAction(str, enum.Enum):
    SEND_TO_REVIEW = "SEND_TO_REVIEW"
    CANCEL_REVIEW = "CANCEL_REVIEW"


class AdminStateAction(str, enum.Enum):
    PUBLISH_EVENT = "PUBLISH_EVENT"
    REJECT_EVENT = "REJECT_EVENT"
