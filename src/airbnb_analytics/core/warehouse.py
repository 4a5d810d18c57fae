"""
Local Parquet warehouse for the Airbnb analytics models.

Every model, seed and snapshot is persisted as one Parquet file under the
warehouse directory. Rows that fail a data-quality check are persisted under
``test_failures/``. Writes go to a temporary file first and are renamed into
place, so a failed run never leaves a partially written table behind.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .type_safety import microsecond_timestamps
from .utils import env_path

logger = logging.getLogger(__name__)

TEST_FAILURES_DIRNAME = "test_failures"


class Warehouse:
    """Reads and writes warehouse tables as Parquet files."""

    def __init__(self, root: Optional[Path] = None, logger: Optional[logging.Logger] = None):
        self.root = Path(root) if root else env_path("AIRBNB_WAREHOUSE_DIR", "warehouse")
        self.root.mkdir(parents=True, exist_ok=True)
        self.failures_dir = self.root / TEST_FAILURES_DIRNAME
        self.logger = logger or logging.getLogger(__name__)

    def table_path(self, name: str) -> Path:
        return self.root / f"{name}.parquet"

    def exists(self, name: str) -> bool:
        return self.table_path(name).exists()

    def read(self, name: str) -> Optional[pd.DataFrame]:
        """Load a table, or None when it has never been written."""
        path = self.table_path(name)
        if not path.exists():
            return None
        return pd.read_parquet(path)

    def list_tables(self) -> List[str]:
        return sorted(p.stem for p in self.root.glob("*.parquet"))

    def write(self, name: str, df: pd.DataFrame) -> Path:
        """Atomically replace a table with the given DataFrame."""
        path = self.table_path(name)
        self._write_parquet(df, path)
        self.logger.info(f"Saved {name} with {len(df)} records to {path}")
        return path

    # -------------------------------------------------------------------------
    # Test-failure sink
    # -------------------------------------------------------------------------

    def failures_path(self, check_name: str) -> Path:
        return self.failures_dir / f"{check_name}.parquet"

    def write_failures(self, check_name: str, failures: pd.DataFrame) -> Path:
        """Persist the failing rows of a data-quality check."""
        self.failures_dir.mkdir(parents=True, exist_ok=True)
        path = self.failures_path(check_name)
        self._write_parquet(failures, path)
        self.logger.info(f"Stored {len(failures)} failing rows for {check_name} in {path}")
        return path

    def clear_failures(self, check_name: str) -> None:
        path = self.failures_path(check_name)
        if path.exists():
            path.unlink()

    def read_failures(self, check_name: str) -> Optional[pd.DataFrame]:
        path = self.failures_path(check_name)
        if not path.exists():
            return None
        return pd.read_parquet(path)

    def _write_parquet(self, df: pd.DataFrame, path: Path) -> None:
        df = microsecond_timestamps(df.copy())
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            df.to_parquet(
                tmp_path,
                index=False,
                coerce_timestamps="us",
                allow_truncated_timestamps=True,
            )
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


# =============================================================================
# RUN STATE TRACKING
# =============================================================================

class RunStateTracker:
    """
    Records run history and observed watermarks.

    Uses a simple JSON file next to the warehouse tables. The incremental
    filter never reads watermarks from here; it always derives them from the
    target table, so this file is purely informational.
    """

    HISTORY_LIMIT = 100

    def __init__(self, tracker_path: Path):
        self.tracker_path = Path(tracker_path)
        self.tracker_path.parent.mkdir(parents=True, exist_ok=True)
        self._state = self._load_state()

    def _load_state(self) -> Dict[str, Any]:
        """Load existing state or create new."""
        if self.tracker_path.exists():
            try:
                with open(self.tracker_path, "r") as f:
                    return json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable run state {self.tracker_path}: {e}")
        return {
            "high_water_marks": {},
            "run_history": []
        }

    def _save_state(self) -> None:
        """Persist state to disk."""
        with open(self.tracker_path, "w") as f:
            json.dump(self._state, f, indent=2, default=str)

    def get_high_water_mark(self, entity: str) -> Optional[datetime]:
        """Get the last recorded watermark for an entity."""
        hwm = self._state["high_water_marks"].get(entity)
        if hwm:
            return datetime.fromisoformat(hwm)
        return None

    def set_high_water_mark(self, entity: str, timestamp: datetime) -> None:
        """Update the recorded watermark for an entity."""
        self._state["high_water_marks"][entity] = pd.Timestamp(timestamp).isoformat()
        self._save_state()

    def record_run(self, command: str, status: str, summary: Dict[str, Any], duration_seconds: float) -> None:
        """Record a pipeline invocation for audit purposes."""
        self._state["run_history"].append({
            "command": command,
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": summary,
            "duration_seconds": round(duration_seconds, 2)
        })
        self._state["run_history"] = self._state["run_history"][-self.HISTORY_LIMIT:]
        self._save_state()

    @property
    def run_history(self) -> List[Dict[str, Any]]:
        return list(self._state["run_history"])
