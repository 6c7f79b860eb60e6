"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError

from eventhub.config import settings
from eventhub.database import Base, engine
from eventhub.exceptions import ApiError, api_error_handler, integrity_error_handler
from eventhub.logging_config import setup_logging

# Import routers
from eventhub.routers import admin_events, categories, events, public_events, requests, users
from eventhub.services.views_service import get_views_aggregator

# Import all models so Base.metadata knows about them
from eventhub.models.user import User                                    # noqa: F401
from eventhub.models.category import Category                            # noqa: F401
from eventhub.models.event import Event                                  # noqa: F401
from eventhub.models.participation_request import ParticipationRequest   # noqa: F401

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="EventHub",
    description="Event publication and capacity-bounded participation requests",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)

# Register routers
app.include_router(users.router, prefix="/admin/users", tags=["Admin: Users"])
app.include_router(categories.admin_router, prefix="/admin/categories", tags=["Admin: Categories"])
app.include_router(admin_events.router, prefix="/admin/events", tags=["Admin: Events"])
app.include_router(events.router, prefix="/users/{user_id}/events", tags=["Private: Events"])
app.include_router(requests.router, prefix="/users/{user_id}/requests", tags=["Private: Requests"])
app.include_router(categories.router, prefix="/categories", tags=["Public: Categories"])
app.include_router(public_events.router, prefix="/events", tags=["Public: Events"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
def on_shutdown():
    """Release the stats service connection pool, if one was ever opened."""
    if get_views_aggregator.cache_info().currsize:
        get_views_aggregator().stats.close()
        get_views_aggregator.cache_clear()


@app.get("/health")
def health_check():
    return {"status": "ok"}
