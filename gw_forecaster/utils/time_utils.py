"""
Timestamp helpers shared by ingestion, the backtest loop and persistence.

Observation timestamps arrive as ISO-8601 strings, with or without a time part
and with or without an offset.  Naive and aware values are never compared
directly: ``parse_timestamp`` normalizes aware values to UTC and leaves naive
values naive, and ``sort_key`` maps both onto a single comparable scale.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def parse_timestamp(value: str | datetime | date) -> datetime:
    """Parse an ISO-8601 timestamp into a ``datetime``.

    Accepts a trailing ``Z`` as UTC and bare dates (``YYYY-MM-DD``).

    Args:
        value: ISO string, ``datetime`` or ``date``.

    Returns:
        A ``datetime``; aware inputs are converted to UTC.

    Raises:
        ValueError: If the string cannot be parsed.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Empty timestamp.")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt


def sort_key(dt: datetime) -> float:
    """Return a sortable number for naive or aware datetimes (naive = UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def is_before(left: datetime, right: datetime) -> bool:
    """``left < right`` tolerant of naive/aware mixing."""
    return sort_key(left) < sort_key(right)


def future_dates(last_timestamp: datetime, horizon: int) -> list[str]:
    """ISO dates for the ``horizon`` days following ``last_timestamp``.

    Args:
        last_timestamp: Timestamp of the newest observation.
        horizon: Number of forecast steps.

    Returns:
        ``["YYYY-MM-DD", ...]`` for ``last + 1 .. last + horizon`` days.
    """
    return [
        (last_timestamp + timedelta(days=i + 1)).date().isoformat()
        for i in range(horizon)
    ]


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string with ``Z`` suffix."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
