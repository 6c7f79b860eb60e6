"""Error taxonomy raised by the service layer.

Services raise these directly; FastAPI turns them into responses through
``api_error_handler``. ``StatsUnavailableError`` is the exception: it never
leaves the views aggregator.
"""
import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from eventhub.clock import format_wire, utc_now

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """Client-facing error with an ApiError-style body."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_status: str = "INTERNAL_SERVER_ERROR"
    reason: str = "Internal server error."

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    error_status = "NOT_FOUND"
    reason = "The required object was not found."


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_status = "BAD_REQUEST"
    reason = "Incorrectly made request."


class ConflictError(ApiError):
    status_code = status.HTTP_409_CONFLICT
    error_status = "CONFLICT"
    reason = "For the requested operation the conditions are not met."


class WrongStateError(ConflictError):
    """The event's current state does not allow the requested transition."""


class StatsUnavailableError(Exception):
    """The view-statistics service timed out, failed or answered garbage."""


def _body(error_status: str, reason: str, message: str) -> dict:
    return {
        "status": error_status,
        "reason": reason,
        "message": message,
        "timestamp": format_wire(utc_now()),
    }


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.error_status, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.error_status, exc.reason, exc.message),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_body("CONFLICT", "Integrity constraint has been violated.", str(exc.orig)),
    )
