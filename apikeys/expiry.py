"""
Time-based validity rules for API keys.

Everything here takes "now" as an argument. Timestamps are naive UTC, matching
what the DateTime columns store.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def compute_expiry(now: datetime, ttl_days: int) -> datetime:
    """valid_until for a key created at `now`."""
    return now + timedelta(days=ttl_days)


def is_expired(valid_until: datetime, now: datetime) -> bool:
    return valid_until < now


def inactivity_cutoff(now: datetime, inactivity_days: int) -> datetime:
    """Accounts with last activity before this instant are considered idle."""
    return now - timedelta(days=inactivity_days)


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with an explicit UTC offset, for JSON responses."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
