"""Time helpers.

Timestamps are stored as naive UTC so that comparisons behave the same on
MySQL and SQLite.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
