"""UTC helpers.

SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
columns, so every comparison against "now" goes through ``as_utc``.
"""
from datetime import datetime

import pytz

WIRE_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive values as UTC; convert aware ones."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def format_wire(value: datetime) -> str:
    """Render a timestamp the way the stats service and error bodies expect it."""
    return as_utc(value).strftime(WIRE_FORMAT)
