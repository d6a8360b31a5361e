"""Unit tests for cohort_analytics.records module."""

from datetime import datetime, timezone

import pytest

from cohort_analytics.ltv import build_profiles
from cohort_analytics.records import PurchaseRecord, UserRecord, parse_rows

NOW = datetime(2025, 6, 15, 12, tzinfo=timezone.utc)


def purchase_row(**overrides):
    row = {
        "id": "p1",
        "user_id": "u1",
        "app_id": "app_a",
        "amount": 100,
        "status": "completed",
        "created_at": "2025-02-01T00:00:00Z",
    }
    row.update(overrides)
    return row


class TestPurchaseRecord:
    """Tests for PurchaseRecord.from_row."""

    def test_valid_row(self):
        """Test a complete row parses."""
        record = PurchaseRecord.from_row(purchase_row(amount="49.50"))

        assert record.amount == 49.5
        assert record.is_completed
        assert record.timestamp == datetime(2025, 2, 1, tzinfo=timezone.utc)

    def test_zero_amount_is_kept(self):
        """Test an explicit zero amount is a valid free purchase."""
        assert PurchaseRecord.from_row(purchase_row(amount=0)).amount == 0.0

    @pytest.mark.parametrize("amount", [None, "", "abc", -5, float("nan"), True])
    def test_unusable_amount_skipped(self, amount):
        """Test rows without a usable amount are rejected."""
        assert PurchaseRecord.from_row(purchase_row(amount=amount)) is None

    def test_missing_amount_key_skipped(self):
        """Test a row with no amount key is rejected."""
        row = purchase_row()
        del row["amount"]

        assert PurchaseRecord.from_row(row) is None

    def test_missing_amount_does_not_count_as_purchase(self):
        """Test a row with no amount never reaches the purchase count."""
        users = parse_rows(UserRecord, [{"id": "u1", "role": "developer", "created_at": "2025-01-01T00:00:00Z"}])
        rows = [purchase_row(), purchase_row(id="p2", amount=None)]

        profiles = build_profiles(users, parse_rows(PurchaseRecord, rows), NOW)

        assert profiles[0].total_purchases == 1
        assert profiles[0].total_spent == 100.0
        assert profiles[0].avg_order_value == 100.0


class TestParseRows:
    """Tests for parse_rows."""

    def test_skips_malformed(self):
        """Test malformed user rows are dropped."""
        rows = [
            {"id": "u1", "role": "tester", "created_at": 1736500000},
            {"id": "u2", "role": "tester"},
            {"role": "tester", "created_at": "2025-01-10T00:00:00Z"},
        ]

        users = parse_rows(UserRecord, rows)

        assert [u.id for u in users] == ["u1"]
        assert users[0].registration_timestamp.tzinfo is not None
