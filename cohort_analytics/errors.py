"""Exception hierarchy for cohort report generation."""


class CohortAnalyticsError(Exception):
    """Base class for all cohort analytics failures."""


class InputError(CohortAnalyticsError):
    """Raised when a report request is malformed. Nothing has been fetched yet."""


class DataSourceError(CohortAnalyticsError):
    """Raised when population, purchase or activity data cannot be fetched."""


class ComputationError(CohortAnalyticsError):
    """Raised when an aggregation hits an unguarded arithmetic fault."""


class ReportTimeoutError(CohortAnalyticsError):
    """Raised when a report exceeds its time budget."""
