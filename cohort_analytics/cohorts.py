"""Cohort construction by registration period."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from .filters import MONTHLY, WEEKLY
from .records import UserRecord

logger = logging.getLogger("cohort_analytics.cohorts")


def truncate_to_period(ts: datetime, period_length: str) -> datetime:
    """Start of the week (Monday) or month containing ts, at 00:00 UTC."""
    ts = ts.astimezone(timezone.utc)
    day_start = datetime(ts.year, ts.month, ts.day, tzinfo=timezone.utc)
    if period_length == WEEKLY:
        return day_start - timedelta(days=day_start.weekday())
    if period_length == MONTHLY:
        return day_start.replace(day=1)
    raise ValueError(f"Unknown period length: {period_length}")


@dataclass(frozen=True)
class Cohort:
    """Users sharing a registration period."""
    anchor_period: datetime
    period_length: str
    member_user_ids: frozenset[str]

    @property
    def size(self) -> int:
        return len(self.member_user_ids)

    @property
    def key(self) -> str:
        return self.anchor_period.date().isoformat()


def build_cohorts(
    users: Iterable[UserRecord],
    period_length: str,
    since: datetime | None = None,
    eligible_roles: Iterable[str] | None = None,
) -> list[Cohort]:
    """Group users into cohorts keyed by their truncated registration time.

    Users registered before ``since`` or outside ``eligible_roles`` are left
    out entirely. Cohorts come back in ascending anchor order.
    """
    roles = set(eligible_roles) if eligible_roles is not None else None
    members: dict[datetime, set[str]] = defaultdict(set)

    excluded = 0
    for user in users:
        if roles is not None and user.role not in roles:
            excluded += 1
            continue
        if since is not None and user.registration_timestamp < since:
            excluded += 1
            continue
        anchor = truncate_to_period(user.registration_timestamp, period_length)
        members[anchor].add(user.id)

    cohorts = [
        Cohort(anchor_period=anchor, period_length=period_length, member_user_ids=frozenset(ids))
        for anchor, ids in sorted(members.items())
    ]
    logger.debug(
        "Built %d %s cohorts (%d users excluded)", len(cohorts), period_length, excluded
    )
    return cohorts


def cohort_index(cohorts: Iterable[Cohort]) -> dict[str, Cohort]:
    """Map each member user id to its cohort."""
    return {uid: cohort for cohort in cohorts for uid in cohort.member_user_ids}
