"""Read-only data source interface and the in-memory implementation."""

import asyncio
import logging
from typing import Any, Callable, Iterable, Protocol

from .filters import FilterCriteria
from .records import ActivityRecord, PurchaseRecord, UserRecord, parse_rows
from .utils import parse_timestamp

logger = logging.getLogger("cohort_analytics.data_source")


class DataSource(Protocol):
    """Snapshot queries the engine needs. Every call honors the criteria's time range and scope."""

    async def fetch_population(self, criteria: FilterCriteria) -> list[UserRecord]: ...

    async def fetch_purchases(self, criteria: FilterCriteria) -> list[PurchaseRecord]: ...

    async def fetch_activity(self, criteria: FilterCriteria) -> list[ActivityRecord]: ...


class RowDataSource:
    """Applies filter criteria to raw row lists supplied by a subclass.

    Loading and filtering run on the default executor, so a slow row
    loader never blocks the event loop and a report timeout can still
    fire while a fetch is in flight.
    """

    def _rows(self, entity: str) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _scope_apps(self, scope_id: str) -> set[str]:
        return {
            str(app.get("id"))
            for app in self._rows("apps")
            if str(app.get("developer_id")) == scope_id
        }

    def _in_range(self, rows: Iterable[dict[str, Any]], criteria: FilterCriteria) -> list[dict[str, Any]]:
        selected = []
        for row in rows:
            ts = parse_timestamp(row.get("created_at"))
            if ts is not None and criteria.time_range.contains(ts):
                selected.append(row)
        return selected

    async def _off_loop(self, select: Callable[[FilterCriteria], list], criteria: FilterCriteria) -> list:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, select, criteria)

    def _select_population(self, criteria: FilterCriteria) -> list[UserRecord]:
        rows = self._in_range(self._rows("users"), criteria)
        if criteria.scope_id is not None:
            apps = self._scope_apps(criteria.scope_id)
            buyers = {
                str(p.get("user_id"))
                for p in self._rows("purchases")
                if str(p.get("app_id")) in apps
            }
            rows = [r for r in rows if str(r.get("id")) in buyers]
        users = parse_rows(UserRecord, rows)
        logger.debug("Population: %d users (scope=%s)", len(users), criteria.scope_id)
        return users

    def _select_purchases(self, criteria: FilterCriteria) -> list[PurchaseRecord]:
        rows = self._in_range(self._rows("purchases"), criteria)
        if criteria.scope_id is not None:
            apps = self._scope_apps(criteria.scope_id)
            rows = [r for r in rows if str(r.get("app_id")) in apps]
        purchases = parse_rows(PurchaseRecord, rows)
        logger.debug("Purchases: %d rows (scope=%s)", len(purchases), criteria.scope_id)
        return purchases

    def _select_activity(self, criteria: FilterCriteria) -> list[ActivityRecord]:
        activity = parse_rows(ActivityRecord, self._in_range(self._rows("activity_logs"), criteria))
        logger.debug("Activity: %d events", len(activity))
        return activity

    async def fetch_population(self, criteria: FilterCriteria) -> list[UserRecord]:
        return await self._off_loop(self._select_population, criteria)

    async def fetch_purchases(self, criteria: FilterCriteria) -> list[PurchaseRecord]:
        return await self._off_loop(self._select_purchases, criteria)

    async def fetch_activity(self, criteria: FilterCriteria) -> list[ActivityRecord]:
        return await self._off_loop(self._select_activity, criteria)


class InMemoryDataSource(RowDataSource):
    """Serves rows held in memory, keyed like the storage tables."""

    def __init__(
        self,
        users: list[dict[str, Any]] | None = None,
        purchases: list[dict[str, Any]] | None = None,
        activity_logs: list[dict[str, Any]] | None = None,
        apps: list[dict[str, Any]] | None = None,
    ):
        self._tables = {
            "users": list(users or []),
            "purchases": list(purchases or []),
            "activity_logs": list(activity_logs or []),
            "apps": list(apps or []),
        }

    def _rows(self, entity: str) -> list[dict[str, Any]]:
        return self._tables[entity]
