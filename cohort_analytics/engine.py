"""Report pipeline: fetch a snapshot, build cohorts, aggregate, assemble.

Each report is computed from scratch. All awaiting happens at the three
fetch calls; everything between them is plain synchronous arithmetic, so
a timeout or cancellation can only land on a fetch boundary and leaves
no partial report behind.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from .cohorts import Cohort, build_cohorts
from .config import Config
from .data_source import DataSource
from .engagement import EngagementResult, aggregate_engagement
from .errors import (
    CohortAnalyticsError,
    ComputationError,
    DataSourceError,
    ReportTimeoutError,
)
from .filters import FilterCriteria
from .insights import generate_insights
from .ltv import build_profiles, overall_ltv, rollup_cohorts
from .report import (
    ENGAGEMENT,
    LTV,
    RETENTION,
    REVENUE,
    CohortReport,
    LTVResult,
    assemble,
)
from .request import AnalysisRequest
from .retention import RetentionResult, aggregate_retention
from .revenue import RevenueResult, aggregate_revenue
from .utils import subtract_months

logger = logging.getLogger("cohort_analytics.engine")

GENERIC_FAILURE = "Failed to generate analysis"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CohortEngine:
    """Generates cohort reports from an injected data source."""

    def __init__(
        self,
        source: DataSource,
        config: Config | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.source = source
        self.config = config or Config()
        self._clock = clock or _utcnow
        self._builders: dict[str, Callable[..., Awaitable[Any]]] = {
            RETENTION: self._retention,
            REVENUE: self._revenue,
            LTV: self._ltv,
            ENGAGEMENT: self._engagement,
        }

    async def generate(self, request: AnalysisRequest) -> CohortReport:
        """Compute one report. Raises a CohortAnalyticsError subclass on failure."""
        timeout = self.config.report_timeout
        if timeout is None:
            return await self._generate(request)
        try:
            return await asyncio.wait_for(self._generate(request), timeout)
        except asyncio.TimeoutError:
            logger.warning("%s report timed out after %.1fs", request.analysis_type, timeout)
            raise ReportTimeoutError(
                f"{request.analysis_type} report exceeded {timeout:.1f}s"
            ) from None

    async def generate_many(
        self, requests: Iterable[AnalysisRequest]
    ) -> list[CohortReport | CohortAnalyticsError]:
        """Compute several independent reports concurrently.

        Each slot holds either the report or the error that report raised.
        """
        requests = list(requests)
        results = await asyncio.gather(
            *(self.generate(r) for r in requests), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, CohortAnalyticsError):
                raise result
        return results

    async def _generate(self, request: AnalysisRequest) -> CohortReport:
        now = self._clock()
        since = subtract_months(now, self.config.lookback_months)
        criteria = FilterCriteria(period_length=request.period, scope_id=request.scope_id)

        logger.info(
            "Generating %s report (period=%s, scope=%s)",
            request.analysis_type, request.period, request.scope_id or "-",
        )
        data = await self._builders[request.analysis_type](criteria, now, since)
        report = self._compute(assemble, request.analysis_type, request.period, data, now)
        logger.info("%s report complete", request.analysis_type)
        return report

    async def _fetch(self, name: str, fetch: Callable[[FilterCriteria], Awaitable[list]], criteria: FilterCriteria) -> list:
        try:
            return await fetch(criteria)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Fetching %s failed", name)
            raise DataSourceError(GENERIC_FAILURE) from e

    def _compute(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except ComputationError:
            raise
        except (ZeroDivisionError, TypeError, ValueError, KeyError) as e:
            logger.exception("Computation in %s failed", getattr(fn, "__name__", fn))
            raise ComputationError(GENERIC_FAILURE) from e

    async def _cohorts(self, criteria: FilterCriteria, since: datetime) -> list[Cohort]:
        users = await self._fetch(
            "population", self.source.fetch_population, criteria.with_time_range(since, None)
        )
        return self._compute(
            build_cohorts, users, criteria.period_length, since, self.config.eligible_roles
        )

    async def _retention(self, criteria: FilterCriteria, now: datetime, since: datetime) -> RetentionResult:
        cohorts = await self._cohorts(criteria, since)
        if not cohorts:
            return RetentionResult(cohort_table=[], average_retention={}, periods=[])
        activity = await self._fetch(
            "activity",
            self.source.fetch_activity,
            criteria.without_scope().with_time_range(cohorts[0].anchor_period, None),
        )
        return self._compute(aggregate_retention, cohorts, activity, self.config.max_offset)

    async def _revenue(self, criteria: FilterCriteria, now: datetime, since: datetime) -> RevenueResult:
        # Scope narrows which purchases count, not who forms the cohorts.
        cohorts = await self._cohorts(criteria.without_scope(), since)
        if not cohorts:
            return RevenueResult(revenue_cohorts=[])
        purchases = await self._fetch(
            "purchases",
            self.source.fetch_purchases,
            criteria.with_time_range(cohorts[0].anchor_period, None),
        )
        return self._compute(aggregate_revenue, cohorts, purchases, self.config.max_offset)

    async def _engagement(self, criteria: FilterCriteria, now: datetime, since: datetime) -> EngagementResult:
        cohorts = await self._cohorts(criteria, since)
        if not cohorts:
            return EngagementResult(engagement_cohorts=[])
        activity = await self._fetch(
            "activity", self.source.fetch_activity, criteria.without_scope().with_time_range(None, None)
        )
        return self._compute(aggregate_engagement, cohorts, activity)

    async def _ltv(self, criteria: FilterCriteria, now: datetime, since: datetime) -> LTVResult:
        population = await self._fetch(
            "population", self.source.fetch_population, criteria.without_scope().with_time_range(None, None)
        )
        roles = set(self.config.eligible_roles)
        users = [u for u in population if u.role in roles]
        purchases = await self._fetch(
            "purchases", self.source.fetch_purchases, criteria.with_time_range(None, None)
        )

        profiles = self._compute(build_profiles, users, purchases, now)
        cohort_ltv = self._compute(rollup_cohorts, profiles, since)
        overall = self._compute(overall_ltv, profiles)
        insights = self._compute(generate_insights, cohort_ltv, overall)
        return LTVResult(cohort_ltv=cohort_ltv, overall_metrics=overall, insights=insights)
