"""Revenue aggregation over completed purchases per cohort offset."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from .alignment import DEFAULT_HORIZON, align
from .cohorts import Cohort, cohort_index
from .records import PurchaseRecord
from .utils import round2, safe_ratio

logger = logging.getLogger("cohort_analytics.revenue")


@dataclass
class RevenueCell:
    total_revenue: float
    purchasing_users: int
    avg_purchase_value: float
    revenue_per_user: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_revenue": round2(self.total_revenue),
            "purchasing_users": self.purchasing_users,
            "avg_purchase_value": round2(self.avg_purchase_value),
            "revenue_per_user": round2(self.revenue_per_user),
        }


@dataclass
class RevenueCohort:
    cohort_period: str
    cohort_size: int
    periods: dict[int, RevenueCell] = field(default_factory=dict)

    @property
    def total_revenue(self) -> float:
        return sum(cell.total_revenue for cell in self.periods.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_period": self.cohort_period,
            "cohort_size": self.cohort_size,
            "periods": {str(k): v.to_dict() for k, v in sorted(self.periods.items())},
        }


@dataclass
class RevenueResult:
    revenue_cohorts: list[RevenueCohort]

    @property
    def total_cohorts(self) -> int:
        return len(self.revenue_cohorts)

    @property
    def avg_revenue_per_cohort(self) -> float:
        return safe_ratio(sum(c.total_revenue for c in self.revenue_cohorts), self.total_cohorts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "revenue_cohorts": [c.to_dict() for c in self.revenue_cohorts],
            "summary": {
                "total_cohorts": self.total_cohorts,
                "avg_revenue_per_cohort": round2(self.avg_revenue_per_cohort),
            },
        }


def aggregate_revenue(
    cohorts: list[Cohort],
    purchases: Iterable[PurchaseRecord],
    horizon: int = DEFAULT_HORIZON,
) -> RevenueResult:
    """Sum completed purchases into (cohort, offset) cells."""
    membership = cohort_index(cohorts)
    totals: dict[str, dict[int, float]] = defaultdict(lambda: defaultdict(float))
    buyers: dict[str, dict[int, set[str]]] = defaultdict(lambda: defaultdict(set))

    for purchase in purchases:
        if not purchase.is_completed:
            continue
        cohort = membership.get(purchase.user_id)
        if cohort is None:
            continue
        offset = align(cohort.anchor_period, purchase.timestamp, cohort.period_length, horizon)
        if offset is None:
            continue
        totals[cohort.key][offset] += purchase.amount
        buyers[cohort.key][offset].add(purchase.user_id)

    result: list[RevenueCohort] = []
    for cohort in cohorts:
        offsets = totals.get(cohort.key)
        if not offsets or cohort.size == 0:
            continue
        row = RevenueCohort(cohort_period=cohort.key, cohort_size=cohort.size)
        for offset in sorted(offsets):
            total = offsets[offset]
            purchasing = len(buyers[cohort.key][offset])
            row.periods[offset] = RevenueCell(
                total_revenue=total,
                purchasing_users=purchasing,
                avg_purchase_value=safe_ratio(total, purchasing),
                revenue_per_user=total / cohort.size,
            )
        result.append(row)

    logger.info("Revenue: %d cohorts with completed purchases", len(result))
    return RevenueResult(revenue_cohorts=result)
