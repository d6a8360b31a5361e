"""Trend and opportunity insights derived from the LTV rollups."""

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from .ltv import CohortLTV, OverallLTV
from .utils import mean

logger = logging.getLogger("cohort_analytics.insights")

POSITIVE = "positive"
WARNING = "warning"
OPPORTUNITY = "opportunity"

TREND_WINDOW = 3
TREND_UP = 1.1
TREND_DOWN = 0.9
HIGH_VALUE_MULTIPLE = 3


@dataclass
class Insight:
    type: str
    message: str
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "value": self.value}


def trend_insight(cohorts: Sequence[CohortLTV]) -> Insight | None:
    """Compare the last three cohorts with the first three.

    With three to five cohorts the two windows share entries.
    """
    if len(cohorts) < TREND_WINDOW:
        return None

    recent_avg = mean(c.avg_ltv for c in cohorts[-TREND_WINDOW:])
    older_avg = mean(c.avg_ltv for c in cohorts[:TREND_WINDOW])

    if recent_avg > older_avg * TREND_UP:
        if older_avg > 0:
            value = f"{(recent_avg - older_avg) / older_avg * 100:.1f}% increase"
        else:
            value = "up from zero"
        return Insight(POSITIVE, "LTV is trending upward in recent cohorts", value)
    if recent_avg < older_avg * TREND_DOWN:
        return Insight(
            WARNING,
            "LTV is declining in recent cohorts",
            f"{(older_avg - recent_avg) / older_avg * 100:.1f}% decrease",
        )
    return None


def opportunity_insight(overall: OverallLTV) -> Insight | None:
    if overall.p90_ltv is None or overall.avg_ltv is None:
        return None
    if overall.p90_ltv > overall.avg_ltv * HIGH_VALUE_MULTIPLE:
        ratio = overall.p90_ltv / overall.avg_ltv
        return Insight(
            OPPORTUNITY,
            "Significant opportunity in high-value user segment",
            f"Top 10% users have {ratio:.1f}x higher LTV",
        )
    return None


def generate_insights(cohorts: Sequence[CohortLTV], overall: OverallLTV) -> list[Insight]:
    insights = [i for i in (trend_insight(cohorts), opportunity_insight(overall)) if i is not None]
    logger.debug("Generated %d LTV insights", len(insights))
    return insights
