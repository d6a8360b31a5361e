"""Customer lifetime value estimation.

Per-user figures come from completed purchases only:

    total_spent                 sum of completed purchase amounts
    lifespan_days               registration -> last purchase (or now)
    estimated_annual_value      total_spent / lifespan_days * 365
    estimated_annual_frequency  total_purchases / lifespan_days * 365
    avg_order_value             total_spent / total_purchases

Ratios with a non-positive denominator are 0. Cohorts are grouped by
registration month over the trailing window; the overall rollup covers
every qualifying user. Medians and p90 use continuous percentiles.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction
from typing import Any, Iterable, Sequence

from .cohorts import truncate_to_period
from .filters import MONTHLY
from .records import PurchaseRecord, UserRecord
from .utils import days_between, mean, round2, safe_ratio

logger = logging.getLogger("cohort_analytics.ltv")

DAYS_PER_YEAR = 365


def percentile_cont(values: Sequence[float], p: float) -> float | None:
    """Continuous percentile with linear interpolation between order statistics.

    Returns None for an empty input, which is distinct from a zero result.
    The rank and interpolation use exact rationals so results such as
    0.9 * 4 -> 3.6 do not pick up binary rounding error.
    """
    if not 0 <= p <= 1:
        raise ValueError(f"Percentile fraction must be within [0, 1], got {p}")
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return None
    rank = Fraction(str(p)) * (n - 1)
    lo = math.floor(rank)
    hi = math.ceil(rank)
    frac = rank - lo
    low, high = Fraction(ordered[lo]), Fraction(ordered[hi])
    return float(low + frac * (high - low))


@dataclass
class LTVProfile:
    user_id: str
    registration_timestamp: datetime
    total_purchases: int
    total_spent: float
    lifespan_days: int

    @property
    def estimated_annual_value(self) -> float:
        return safe_ratio(self.total_spent, self.lifespan_days) * DAYS_PER_YEAR

    @property
    def estimated_annual_frequency(self) -> float:
        return safe_ratio(self.total_purchases, self.lifespan_days) * DAYS_PER_YEAR

    @property
    def avg_order_value(self) -> float:
        return safe_ratio(self.total_spent, self.total_purchases)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "total_purchases": self.total_purchases,
            "total_spent": round2(self.total_spent),
            "lifespan_days": self.lifespan_days,
            "estimated_annual_value": round2(self.estimated_annual_value),
            "estimated_annual_frequency": round2(self.estimated_annual_frequency),
            "avg_order_value": round2(self.avg_order_value),
        }


@dataclass
class CohortLTV:
    cohort_month: str
    cohort_size: int
    avg_ltv: float
    median_ltv: float | None
    avg_annual_value: float
    avg_order_value: float
    avg_annual_frequency: float
    avg_lifespan_days: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_month": self.cohort_month,
            "cohort_size": self.cohort_size,
            "avg_ltv": round2(self.avg_ltv),
            "median_ltv": round2(self.median_ltv),
            "avg_annual_value": round2(self.avg_annual_value),
            "avg_order_value": round2(self.avg_order_value),
            "avg_annual_frequency": round2(self.avg_annual_frequency),
            "avg_lifespan_days": round2(self.avg_lifespan_days),
        }


@dataclass
class OverallLTV:
    total_users: int
    avg_ltv: float | None
    median_ltv: float | None
    p90_ltv: float | None
    max_ltv: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_users": self.total_users,
            "avg_ltv": round2(self.avg_ltv),
            "median_ltv": round2(self.median_ltv),
            "p90_ltv": round2(self.p90_ltv),
            "max_ltv": round2(self.max_ltv),
        }


def build_profiles(
    users: Iterable[UserRecord],
    purchases: Iterable[PurchaseRecord],
    now: datetime,
) -> list[LTVProfile]:
    """One profile per user; users without completed purchases spend 0."""
    spent: dict[str, float] = defaultdict(float)
    purchase_ids: dict[str, set[str]] = defaultdict(set)
    last_purchase: dict[str, datetime] = {}

    for purchase in purchases:
        if not purchase.is_completed:
            continue
        uid = purchase.user_id
        if purchase.id in purchase_ids[uid]:
            continue
        purchase_ids[uid].add(purchase.id)
        spent[uid] += purchase.amount
        if uid not in last_purchase or purchase.timestamp > last_purchase[uid]:
            last_purchase[uid] = purchase.timestamp

    profiles = []
    for user in users:
        end = last_purchase.get(user.id, now)
        profiles.append(LTVProfile(
            user_id=user.id,
            registration_timestamp=user.registration_timestamp,
            total_purchases=len(purchase_ids.get(user.id, ())),
            total_spent=spent.get(user.id, 0.0),
            lifespan_days=days_between(user.registration_timestamp, end),
        ))
    logger.debug("Built %d LTV profiles from %d purchasers", len(profiles), len(spent))
    return profiles


def rollup_cohorts(profiles: Iterable[LTVProfile], since: datetime | None = None) -> list[CohortLTV]:
    """Monthly registration cohorts in ascending month order."""
    groups: dict[datetime, list[LTVProfile]] = defaultdict(list)
    for profile in profiles:
        if since is not None and profile.registration_timestamp < since:
            continue
        groups[truncate_to_period(profile.registration_timestamp, MONTHLY)].append(profile)

    rollup = []
    for month, members in sorted(groups.items()):
        spend = [m.total_spent for m in members]
        rollup.append(CohortLTV(
            cohort_month=month.date().isoformat(),
            cohort_size=len(members),
            avg_ltv=mean(spend),
            median_ltv=percentile_cont(spend, 0.5),
            avg_annual_value=mean(m.estimated_annual_value for m in members),
            avg_order_value=mean(m.avg_order_value for m in members),
            avg_annual_frequency=mean(m.estimated_annual_frequency for m in members),
            avg_lifespan_days=mean(m.lifespan_days for m in members),
        ))
    return rollup


def overall_ltv(profiles: Iterable[LTVProfile]) -> OverallLTV:
    spend = [p.total_spent for p in profiles]
    return OverallLTV(
        total_users=len(spend),
        avg_ltv=mean(spend),
        median_ltv=percentile_cont(spend, 0.5),
        p90_ltv=percentile_cont(spend, 0.9),
        max_ltv=max(spend) if spend else None,
    )
