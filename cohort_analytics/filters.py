"""Structured filter criteria handed to data sources.

Sources receive these values as-is and translate them into their own
lookup (bound SQL parameters, in-memory predicates), so no query text is
ever assembled from request input.
"""

from dataclasses import dataclass, replace
from datetime import datetime

WEEKLY = "weekly"
MONTHLY = "monthly"
PERIOD_LENGTHS = (WEEKLY, MONTHLY)


@dataclass(frozen=True)
class TimeRange:
    """Half-open ``[start, end)`` window; a missing bound is unbounded."""
    start: datetime | None = None
    end: datetime | None = None

    def contains(self, ts: datetime) -> bool:
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts >= self.end:
            return False
        return True


@dataclass(frozen=True)
class FilterCriteria:
    period_length: str = MONTHLY
    scope_id: str | None = None
    time_range: TimeRange = TimeRange()

    def with_scope(self, scope_id: str | None) -> "FilterCriteria":
        return replace(self, scope_id=scope_id)

    def without_scope(self) -> "FilterCriteria":
        return replace(self, scope_id=None)

    def with_time_range(self, start: datetime | None = None, end: datetime | None = None) -> "FilterCriteria":
        return replace(self, time_range=TimeRange(start, end))

    @property
    def is_scoped(self) -> bool:
        return self.scope_id is not None
