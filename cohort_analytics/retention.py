"""Retention aggregation: distinct active cohort members per period offset."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from .alignment import DEFAULT_HORIZON, align
from .cohorts import Cohort, cohort_index
from .records import ActivityRecord
from .utils import mean, round2

logger = logging.getLogger("cohort_analytics.retention")


@dataclass
class RetentionCell:
    users: int
    retention_rate: float  # percent, 2dp

    def to_dict(self) -> dict[str, Any]:
        return {"users": self.users, "retention_rate": self.retention_rate}


@dataclass
class RetentionCohort:
    cohort_period: str
    cohort_size: int
    retention_rates: dict[int, RetentionCell] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_period": self.cohort_period,
            "cohort_size": self.cohort_size,
            "retention_rates": {str(k): v.to_dict() for k, v in sorted(self.retention_rates.items())},
        }


@dataclass
class RetentionResult:
    cohort_table: list[RetentionCohort]
    average_retention: dict[int, float]
    periods: list[int]

    @property
    def total_cohorts(self) -> int:
        return len(self.cohort_table)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_table": [c.to_dict() for c in self.cohort_table],
            "average_retention": {str(k): round2(v) for k, v in sorted(self.average_retention.items())},
            "periods": self.periods,
            "total_cohorts": self.total_cohorts,
        }


def retention_rate(active_users: int, cohort_size: int) -> float | None:
    """Percent of a cohort active at an offset; undefined for an empty cohort."""
    if cohort_size <= 0:
        return None
    return round(active_users / cohort_size * 100, 2)


def aggregate_retention(
    cohorts: list[Cohort],
    activity: Iterable[ActivityRecord],
    horizon: int = DEFAULT_HORIZON,
) -> RetentionResult:
    """Build the retention table for ``cohorts`` from activity events.

    Only (cohort, offset) pairs with at least one event get an entry, and a
    cohort with no entries at all is left out of the table. The average for
    an offset covers only the cohorts that have an entry there.
    """
    membership = cohort_index(cohorts)
    active: dict[str, dict[int, set[str]]] = defaultdict(lambda: defaultdict(set))

    dropped = 0
    for event in activity:
        cohort = membership.get(event.user_id)
        if cohort is None:
            continue
        offset = align(cohort.anchor_period, event.timestamp, cohort.period_length, horizon)
        if offset is None:
            dropped += 1
            continue
        active[cohort.key][offset].add(event.user_id)

    if dropped:
        logger.debug("Dropped %d activity events outside offsets 0..%d", dropped, horizon)

    table: list[RetentionCohort] = []
    for cohort in cohorts:
        offsets = active.get(cohort.key)
        if not offsets or cohort.size == 0:
            continue
        row = RetentionCohort(cohort_period=cohort.key, cohort_size=cohort.size)
        for offset in sorted(offsets):
            users = len(offsets[offset])
            row.retention_rates[offset] = RetentionCell(
                users=users, retention_rate=retention_rate(users, cohort.size)
            )
        table.append(row)

    periods = sorted({offset for row in table for offset in row.retention_rates})
    average_retention: dict[int, float] = {}
    for offset in periods:
        avg = mean(
            row.retention_rates[offset].retention_rate
            for row in table
            if offset in row.retention_rates
        )
        if avg is not None:
            average_retention[offset] = avg

    logger.info("Retention: %d cohorts, %d distinct offsets", len(table), len(periods))
    return RetentionResult(cohort_table=table, average_retention=average_retention, periods=periods)
