"""JSON-file data source with a per-entity load cache.

Each table lives in ``<data_dir>/json/<entity>.json`` as a list of rows.
Files are read once and reused across the reports of a run, so
``report all`` touches each file a single time.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any

from .data_source import RowDataSource

logger = logging.getLogger("cohort_analytics.data_cache")


class DataCache:
    """Cache for loaded JSON data files.

    Unlike a lenient loader, a file that exists but cannot be read or
    parsed raises, so a report never runs on silently missing data.
    A missing file is an empty table. Reports fetch concurrently from
    executor threads, so loading is serialized per cache.
    """

    def __init__(self, json_dir: Path):
        self.json_dir = json_dir
        self._cache: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, entity: str) -> list[dict[str, Any]]:
        """Get rows for an entity, loading from disk if not cached."""
        with self._lock:
            if entity in self._cache:
                logger.debug("Cache hit for %s", entity)
                return self._cache[entity]

            file_path = self.json_dir / f"{entity}.json"
            if not file_path.exists():
                logger.warning("Data file not found: %s", file_path)
                self._cache[entity] = []
                return []

            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError(f"{file_path}: expected a list of rows, got {type(data).__name__}")

            self._cache[entity] = data
            logger.info(
                "Loaded %s: %d records (%.1f KB)",
                entity,
                len(data),
                file_path.stat().st_size / 1024,
            )
            return data


class JsonDataSource(RowDataSource):
    """Data source over the JSON export directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.cache = DataCache(data_dir / "json")

    def _rows(self, entity: str) -> list[dict[str, Any]]:
        return self.cache.get(entity)
