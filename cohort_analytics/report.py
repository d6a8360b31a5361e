"""Report shapes, one per analysis type, and their assembly."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from .engagement import EngagementResult
from .errors import ComputationError
from .insights import Insight
from .ltv import CohortLTV, OverallLTV
from .retention import RetentionResult
from .revenue import RevenueResult

RETENTION = "retention"
REVENUE = "revenue"
LTV = "ltv"
ENGAGEMENT = "engagement"
ANALYSIS_TYPES = (RETENTION, REVENUE, LTV, ENGAGEMENT)


@dataclass
class LTVResult:
    cohort_ltv: list[CohortLTV]
    overall_metrics: OverallLTV
    insights: list[Insight] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cohort_ltv": [c.to_dict() for c in self.cohort_ltv],
            "overall_metrics": self.overall_metrics.to_dict(),
            "insights": [i.to_dict() for i in self.insights],
        }


ReportData = Union[RetentionResult, RevenueResult, LTVResult, EngagementResult]

RESULT_TYPES: dict[str, type] = {
    RETENTION: RetentionResult,
    REVENUE: RevenueResult,
    LTV: LTVResult,
    ENGAGEMENT: EngagementResult,
}


@dataclass
class CohortReport:
    """A finished report for exactly one analysis type."""
    type: str
    period: str
    data: ReportData
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "period": self.period,
            "data": self.data.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }

    def to_response(self) -> dict[str, Any]:
        return {"success": True, "cohort_analysis": self.to_dict()}


def assemble(analysis_type: str, period: str, data: ReportData, generated_at: datetime) -> CohortReport:
    expected = RESULT_TYPES.get(analysis_type)
    if expected is None:
        raise ComputationError(f"No report shape for analysis type {analysis_type!r}")
    if not isinstance(data, expected):
        raise ComputationError(
            f"{analysis_type} report cannot carry {type(data).__name__}"
        )
    return CohortReport(type=analysis_type, period=period, data=data, generated_at=generated_at)
