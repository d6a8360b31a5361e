"""Configuration loading and validation."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_ROLES = ("developer", "tester")
SOURCE_KINDS = ("json", "sqlite")


@dataclass
class Config:
    data_dir: Path = field(default_factory=lambda: Path("data"))
    output_dir: Path = field(default_factory=lambda: Path("output"))
    lookback_months: int = 12
    max_offset: int = 12
    eligible_roles: tuple[str, ...] = DEFAULT_ROLES
    log_level: str = "INFO"
    report_timeout: float | None = None
    source: str = "json"

    @property
    def log_file(self) -> Path:
        return self.output_dir / "cohort_analytics.log"

    @property
    def sqlite_path(self) -> Path:
        return self.data_dir / "marketplace.db"


def _fail(message: str) -> None:
    print(f"Error: {message}")
    print("Set it in a .env file or export it in your shell.")
    sys.exit(1)


def _int_env(name: str, default: str) -> int:
    raw = os.environ.get(name, default).strip()
    try:
        value = int(raw)
    except ValueError:
        _fail(f"{name} must be an integer, got {raw!r}.")
    if value < 0:
        _fail(f"{name} must not be negative, got {value}.")
    return value


def load_config() -> Config:
    """Load configuration from environment variables (.env file supported)."""
    load_dotenv()

    roles_raw = os.environ.get("COHORT_ELIGIBLE_ROLES", ",".join(DEFAULT_ROLES))
    roles = tuple(r.strip() for r in roles_raw.split(",") if r.strip())
    if not roles:
        _fail("COHORT_ELIGIBLE_ROLES must name at least one role.")

    timeout_raw = os.environ.get("COHORT_REPORT_TIMEOUT", "").strip()
    report_timeout = None
    if timeout_raw:
        try:
            report_timeout = float(timeout_raw)
        except ValueError:
            _fail(f"COHORT_REPORT_TIMEOUT must be a number of seconds, got {timeout_raw!r}.")

    source = os.environ.get("COHORT_SOURCE", "json").strip().lower()
    if source not in SOURCE_KINDS:
        _fail(f"COHORT_SOURCE must be one of {', '.join(SOURCE_KINDS)}, got {source!r}.")

    return Config(
        data_dir=Path(os.environ.get("COHORT_DATA_DIR", "data")),
        output_dir=Path(os.environ.get("COHORT_OUTPUT_DIR", "output")),
        lookback_months=_int_env("COHORT_LOOKBACK_MONTHS", "12"),
        max_offset=_int_env("COHORT_MAX_OFFSET", "12"),
        eligible_roles=roles,
        log_level=os.environ.get("COHORT_LOG_LEVEL", "INFO").upper(),
        report_timeout=report_timeout,
        source=source,
    )
