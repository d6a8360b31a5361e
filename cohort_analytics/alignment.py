"""Relative period offsets between a cohort anchor and an event."""

from datetime import datetime

from .cohorts import truncate_to_period
from .filters import MONTHLY, WEEKLY

DEFAULT_HORIZON = 12


def period_offset(anchor_period: datetime, event_ts: datetime, period_length: str) -> int:
    """Whole periods from anchor_period to the period containing event_ts.

    Weekly offsets are day differences floored to weeks. Monthly offsets
    are calendar-month differences, so every month counts as one period
    regardless of its length.
    """
    event_period = truncate_to_period(event_ts, period_length)
    if period_length == WEEKLY:
        return (event_period - anchor_period).days // 7
    if period_length == MONTHLY:
        return (event_period.year - anchor_period.year) * 12 + (event_period.month - anchor_period.month)
    raise ValueError(f"Unknown period length: {period_length}")


def align(
    anchor_period: datetime,
    event_ts: datetime,
    period_length: str,
    horizon: int = DEFAULT_HORIZON,
) -> int | None:
    """Offset of event_ts within ``0..horizon``, or None when it falls outside."""
    offset = period_offset(anchor_period, event_ts, period_length)
    if offset < 0 or offset > horizon:
        return None
    return offset
