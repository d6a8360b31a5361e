"""Pytest fixtures for cohort_analytics tests."""

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cohort_analytics.config import Config

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_config(temp_dir):
    """Create a sample Config instance for testing."""
    return Config(
        data_dir=temp_dir,
        output_dir=temp_dir / "output",
        log_level="DEBUG",
    )


@pytest.fixture
def marketplace_rows():
    """Rows for a small marketplace: two monthly cohorts and two developers.

    Cohort 2025-01 has u1..u10, cohort 2025-02 has u11..u18. All 18 are
    active in their registration month; u1..u5 come back in February.
    An admin and a user registered before the lookback window never count.
    """
    users = [
        {"id": f"u{i}", "role": "developer" if i % 2 else "tester", "created_at": f"2025-01-{i + 2:02d}T09:00:00Z"}
        for i in range(1, 11)
    ] + [
        {"id": f"u{i}", "role": "tester", "created_at": f"2025-02-{i - 8:02d}T09:00:00Z"}
        for i in range(11, 19)
    ] + [
        {"id": "admin1", "role": "admin", "created_at": "2025-01-10T09:00:00Z"},
        {"id": "old1", "role": "developer", "created_at": "2023-03-01T09:00:00Z"},
    ]

    activity = [
        {"user_id": f"u{i}", "action": "login", "created_at": f"2025-01-{i + 12:02d}T10:00:00Z"}
        for i in range(1, 11)
    ] + [
        {"user_id": f"u{i}", "action": "review", "created_at": f"2025-02-{i + 10:02d}T10:00:00Z"}
        for i in range(1, 6)
    ] + [
        {"user_id": f"u{i}", "action": "login", "created_at": f"2025-02-{i:02d}T18:00:00Z"}
        for i in range(11, 19)
    ] + [
        {"user_id": "admin1", "action": "login", "created_at": "2025-03-01T10:00:00Z"},
    ]

    apps = [
        {"id": "app_a", "developer_id": "dev_1"},
        {"id": "app_b", "developer_id": "dev_2"},
    ]

    purchases = [
        {"id": "p1", "user_id": "u1", "app_id": "app_a", "amount": 100, "status": "completed", "created_at": "2025-01-20T10:00:00Z"},
        {"id": "p2", "user_id": "u1", "app_id": "app_b", "amount": 50, "status": "completed", "created_at": "2025-02-20T10:00:00Z"},
        {"id": "p3", "user_id": "u2", "app_id": "app_a", "amount": 30, "status": "refunded", "created_at": "2025-01-21T10:00:00Z"},
        {"id": "p4", "user_id": "u11", "app_id": "app_b", "amount": 20, "status": "completed", "created_at": "2025-02-22T10:00:00Z"},
        {"id": "p5", "user_id": "old1", "app_id": "app_a", "amount": 400, "status": "completed", "created_at": "2024-01-05T10:00:00Z"},
    ]

    return {"users": users, "purchases": purchases, "activity_logs": activity, "apps": apps}


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for config loading tests."""
    env_vars = {
        "COHORT_DATA_DIR": "/tmp/cohort_data",
        "COHORT_OUTPUT_DIR": "/tmp/cohort_output",
        "COHORT_LOOKBACK_MONTHS": "6",
        "COHORT_MAX_OFFSET": "8",
        "COHORT_ELIGIBLE_ROLES": "developer, tester ,buyer",
        "COHORT_LOG_LEVEL": "warning",
        "COHORT_REPORT_TIMEOUT": "2.5",
        "COHORT_SOURCE": "SQLITE",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars
