"""
UsageStore — Persistent per-command invocation counters

Counts feed the ranking engine's usage boost:
- Keyed by CommandEntry.usage_key ("<provenance>::<name>")
- Monotonically non-decreasing except on explicit reset
- Survive process restarts

Storage:
- <config home>/usage.json as {"counts": {...}} (orjson)
- Writes serialized by a lock, written to a temp file then os.replace'd
- A missing or corrupt file reads as empty counts
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

import orjson


logger = logging.getLogger(__name__)

USAGE_FILENAME = "usage.json"


class UsageStore:
    """
    Invocation counters backed by a JSON file.

    Key methods:
    - count/counts: read access for ranking
    - record: increment after a successful run
    - reset: clear one key or everything
    """

    def __init__(self, storage_path: Optional[Path] = None):
        """
        Initialize UsageStore.

        Args:
            storage_path: JSON file to persist to; None keeps counts in memory
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = self._load()

    def _load(self) -> Dict[str, int]:
        """Load counts from storage."""
        if self.storage_path is None or not self.storage_path.exists():
            return {}
        try:
            data = orjson.loads(self.storage_path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable usage file %s: %s", self.storage_path, e)
            return {}

        counts = data.get("counts", {}) if isinstance(data, dict) else {}
        if not isinstance(counts, dict):
            return {}
        # Drop anything that is not a non-negative integer
        return {
            str(key): value for key, value in counts.items()
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0
        }

    def _save(self):
        """Write counts atomically. Caller holds the lock."""
        if self.storage_path is None:
            return
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        payload = orjson.dumps({"counts": self._counts}, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)

        fd, tmp_name = tempfile.mkstemp(
            prefix=".usage-", suffix=".tmp", dir=str(self.storage_path.parent)
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, self.storage_path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    def count(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    def counts(self) -> Dict[str, int]:
        """Snapshot of all counts, safe to hand to the ranking engine."""
        with self._lock:
            return dict(self._counts)

    # -------------------------------------------------------------------------
    # Write access
    # -------------------------------------------------------------------------

    def record(self, key: str) -> int:
        """
        Increment a command's counter and persist.

        Persistence failures are logged; the in-memory count still advances
        so ranking stays consistent for this session.

        Returns:
            The new count
        """
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            new_count = self._counts[key]
            try:
                self._save()
            except OSError as e:
                logger.error("Failed to persist usage to %s: %s", self.storage_path, e)
        logger.debug("Recorded usage %s -> %d", key, new_count)
        return new_count

    def reset(self, key: Optional[str] = None):
        """Clear one counter, or all of them when key is None."""
        with self._lock:
            if key is None:
                self._counts.clear()
            else:
                self._counts.pop(key, None)
            self._save()
