import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable

logger = logging.getLogger("cohort_analytics.utils")


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a Unix timestamp, ISO-8601 string or datetime to an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp: %r", value)
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from start to end (negative if end precedes start)."""
    return (end - start).days


def subtract_months(dt: datetime, months: int) -> datetime:
    """Step back a number of calendar months, clamping the day to the target month."""
    total = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(dt.day, _days_in_month(year, month))
    return dt.replace(year=year, month=month, day=day)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        nxt = date(year + 1, 1, 1)
    else:
        nxt = date(year, month + 1, 1)
    return (nxt - date(year, month, 1)).days


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def mean(values: Iterable[float]) -> float | None:
    """Arithmetic mean, or None for an empty input."""
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def round2(value: float | None) -> float:
    """Round to cents for reporting; an undefined figure reports as 0."""
    if value is None:
        return 0.0
    return round(value, 2)
