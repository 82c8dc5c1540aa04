"""Time helpers."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)
