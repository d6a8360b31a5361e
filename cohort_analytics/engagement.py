"""Per-user activity rollups and engagement tiers by cohort."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from .cohorts import Cohort
from .records import ActivityRecord
from .utils import mean, round2

logger = logging.getLogger("cohort_analytics.engagement")

HIGHLY_ENGAGED_DAYS = 7
ENGAGED_DAYS = 1

HIGHLY_ENGAGED = "highly_engaged"
ENGAGED = "engaged"


@dataclass
class UserEngagement:
    user_id: str
    active_days: int = 0
    total_actions: int = 0
    unique_actions: int = 0

    @property
    def tier(self) -> str | None:
        return engagement_tier(self.active_days)


def engagement_tier(active_days: int) -> str | None:
    if active_days >= HIGHLY_ENGAGED_DAYS:
        return HIGHLY_ENGAGED
    if active_days >= ENGAGED_DAYS:
        return ENGAGED
    return None


@dataclass
class EngagementCohort:
    cohort_period: str
    cohort_size: int
    avg_active_days: float
    avg_total_actions: float
    avg_unique_actions: float
    highly_engaged_users: int
    engaged_users: int

    @property
    def high_engagement_rate(self) -> float:
        return round(self.highly_engaged_users / self.cohort_size * 100, 2)

    @property
    def engagement_rate(self) -> float:
        return round(self.engaged_users / self.cohort_size * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_period": self.cohort_period,
            "cohort_size": self.cohort_size,
            "avg_active_days": round2(self.avg_active_days),
            "avg_total_actions": round2(self.avg_total_actions),
            "avg_unique_actions": round2(self.avg_unique_actions),
            "highly_engaged_users": self.highly_engaged_users,
            "engaged_users": self.engaged_users,
            "high_engagement_rate": self.high_engagement_rate,
            "engagement_rate": self.engagement_rate,
        }


@dataclass
class EngagementResult:
    engagement_cohorts: list[EngagementCohort]

    @property
    def total_cohorts(self) -> int:
        return len(self.engagement_cohorts)

    @property
    def avg_engagement_rate(self) -> float | None:
        return mean(c.engagement_rate for c in self.engagement_cohorts)

    @property
    def avg_high_engagement_rate(self) -> float | None:
        return mean(c.high_engagement_rate for c in self.engagement_cohorts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "engagement_cohorts": [c.to_dict() for c in self.engagement_cohorts],
            "summary": {
                "total_cohorts": self.total_cohorts,
                "avg_engagement_rate": round2(self.avg_engagement_rate),
                "avg_high_engagement_rate": round2(self.avg_high_engagement_rate),
            },
        }


def user_engagement(activity: Iterable[ActivityRecord]) -> dict[str, UserEngagement]:
    """Roll activity up per user. Repeated actions all count toward total_actions."""
    days: dict[str, set[date]] = defaultdict(set)
    actions: dict[str, set[str]] = defaultdict(set)
    counts: dict[str, int] = defaultdict(int)

    for event in activity:
        days[event.user_id].add(event.timestamp.date())
        actions[event.user_id].add(event.action)
        counts[event.user_id] += 1

    return {
        uid: UserEngagement(
            user_id=uid,
            active_days=len(days[uid]),
            total_actions=counts[uid],
            unique_actions=len(actions[uid]),
        )
        for uid in counts
    }


def aggregate_engagement(cohorts: list[Cohort], activity: Iterable[ActivityRecord]) -> EngagementResult:
    """Average activity and count engagement tiers for every cohort member.

    Members without any activity still count, with zero days and actions.
    """
    per_user = user_engagement(activity)

    result: list[EngagementCohort] = []
    for cohort in cohorts:
        if cohort.size == 0:
            continue
        members = [per_user.get(uid) or UserEngagement(user_id=uid) for uid in sorted(cohort.member_user_ids)]
        result.append(EngagementCohort(
            cohort_period=cohort.key,
            cohort_size=cohort.size,
            avg_active_days=mean(m.active_days for m in members),
            avg_total_actions=mean(m.total_actions for m in members),
            avg_unique_actions=mean(m.unique_actions for m in members),
            highly_engaged_users=sum(1 for m in members if m.tier == HIGHLY_ENGAGED),
            engaged_users=sum(1 for m in members if m.active_days >= ENGAGED_DAYS),
        ))

    logger.info("Engagement: %d cohorts, %d users with activity", len(result), len(per_user))
    return EngagementResult(engagement_cohorts=result)
