"""Snapshot records consumed by the cohort engine.

Rows arrive from the data sources in the marketplace's storage shape:

  users          id, role, created_at
  purchases      id, user_id, app_id, amount, status, created_at
  activity_logs  user_id, action, created_at
  apps           id, developer_id   (ownership, used for scope filtering)

``created_at`` becomes the record's timestamp. Only purchases with
status ``completed`` ever count toward revenue or lifetime value.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .utils import parse_timestamp

logger = logging.getLogger("cohort_analytics.records")

COMPLETED = "completed"


@dataclass(frozen=True)
class UserRecord:
    id: str
    registration_timestamp: datetime
    role: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserRecord | None":
        user_id = row.get("id")
        created = parse_timestamp(row.get("created_at"))
        if user_id is None or created is None:
            return None
        return cls(id=str(user_id), registration_timestamp=created, role=str(row.get("role") or ""))


@dataclass(frozen=True)
class PurchaseRecord:
    id: str
    user_id: str
    app_id: str
    amount: float
    status: str
    timestamp: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PurchaseRecord | None":
        purchase_id = row.get("id")
        user_id = row.get("user_id")
        created = parse_timestamp(row.get("created_at"))
        if purchase_id is None or user_id is None or created is None:
            return None
        raw_amount = row.get("amount")
        if raw_amount is None or isinstance(raw_amount, bool):
            return None
        try:
            amount = float(raw_amount)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(amount) or amount < 0:
            return None
        return cls(
            id=str(purchase_id),
            user_id=str(user_id),
            app_id=str(row.get("app_id") or ""),
            amount=amount,
            status=str(row.get("status") or ""),
            timestamp=created,
        )


@dataclass(frozen=True)
class ActivityRecord:
    user_id: str
    action: str
    timestamp: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ActivityRecord | None":
        user_id = row.get("user_id")
        created = parse_timestamp(row.get("created_at"))
        if user_id is None or created is None:
            return None
        return cls(user_id=str(user_id), action=str(row.get("action") or ""), timestamp=created)


def parse_rows(record_cls: type, rows: Iterable[dict[str, Any]]) -> list:
    """Convert raw rows with ``record_cls.from_row``, skipping malformed ones."""
    records = []
    skipped = 0
    for row in rows:
        record = record_cls.from_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("Skipped %d malformed %s rows", skipped, record_cls.__name__)
    return records
