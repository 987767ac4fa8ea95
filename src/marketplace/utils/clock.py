"""Time helpers shared by the expiring aggregates.

Persisted datetimes can come back naive depending on the provider, so every
deadline comparison goes through ``as_utc``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_past(deadline: datetime | None, as_of: datetime | None = None) -> bool:
    """True when ``deadline`` is set and ``as_of`` (default now) is after it."""
    if deadline is None:
        return False
    return as_utc(as_of or utcnow()) > as_utc(deadline)


def money(value: float) -> float:
    """Round a currency amount to cents."""
    return round(float(value), 2)
