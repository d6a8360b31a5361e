"""Validation of incoming report requests."""

import re
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import InputError
from .filters import MONTHLY, PERIOD_LENGTHS
from .report import ANALYSIS_TYPES

_SCOPE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True)
class AnalysisRequest:
    analysis_type: str
    period: str = MONTHLY
    scope_id: str | None = None

    def __post_init__(self) -> None:
        if self.analysis_type not in ANALYSIS_TYPES:
            raise InputError(
                f"Unknown analysis type {self.analysis_type!r}; expected one of {', '.join(ANALYSIS_TYPES)}"
            )
        if self.period not in PERIOD_LENGTHS:
            raise InputError(
                f"Unknown period {self.period!r}; expected one of {', '.join(PERIOD_LENGTHS)}"
            )
        if self.scope_id is not None and not (
            isinstance(self.scope_id, str) and _SCOPE_ID_PATTERN.match(self.scope_id)
        ):
            raise InputError(f"Malformed scope id {self.scope_id!r}")

    @classmethod
    def parse(cls, params: Mapping[str, Any]) -> "AnalysisRequest":
        """Build a request from query-style parameters (``type``/``analysis_type``, ``period``, ``scope_id``)."""
        analysis_type = params.get("analysis_type") or params.get("type")
        if not analysis_type:
            raise InputError("analysis_type is required")
        scope_id = params.get("scope_id")
        return cls(
            analysis_type=str(analysis_type),
            period=str(params.get("period") or MONTHLY),
            scope_id=scope_id if scope_id not in ("", None) else None,
        )
