"""
Storage for accepted cost data points.

Points are appended to one JSONL file per category; progress.json tracks
which IDs have been saved so repeated pipeline runs can be audited.
"""

import dataclasses
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

from ..models import CostDataPoint

logger = logging.getLogger(__name__)


def read_data_points(path: str | Path) -> list[CostDataPoint]:
    """
    Load data points from a .json (array) or .jsonl file.

    Raises:
        ValueError: on malformed content
        OSError: if the file cannot be read
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        if path.suffix == ".jsonl":
            entries = [json.loads(line) for line in f if line.strip()]
        else:
            entries = json.load(f)
            if isinstance(entries, dict):
                entries = entries.get("data_points", [])
    if not isinstance(entries, list):
        raise ValueError(f"Expected a list of data points in {path}")
    return [CostDataPoint.from_dict(entry) for entry in entries]


def write_data_points(path: str | Path, points: list[CostDataPoint]):
    """Write data points as a JSON array (or JSONL for a .jsonl path)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix == ".jsonl":
            for dp in points:
                f.write(json.dumps(dp.to_dict(), ensure_ascii=False) + "\n")
        else:
            json.dump([dp.to_dict() for dp in points], f, indent=2, ensure_ascii=False)


class DataStore:
    """
    Persists validated data points.

    Features:
    - JSONL per category
    - ID assignment for points scraped without one
    - Progress tracking
    """

    def __init__(self, data_dir: str | None = None):
        self.data_dir = Path(data_dir or os.environ.get("DATA_DIR", "data"))
        self.jsonl_dir = self.data_dir / "jsonl"
        self.progress_file = self.data_dir / "progress.json"

        self.jsonl_dir.mkdir(parents=True, exist_ok=True)

        self.progress = self._load_progress()

    def _load_progress(self) -> dict:
        """Load progress from file or create new."""
        if self.progress_file.exists():
            with open(self.progress_file, encoding="utf-8") as f:
                return json.load(f)
        return {
            "created": datetime.now(timezone.utc).isoformat(),
            "saved_ids": [],
            "total_count": 0,
        }

    def _save_progress(self):
        self.progress["updated"] = datetime.now(timezone.utc).isoformat()
        with open(self.progress_file, "w", encoding="utf-8") as f:
            json.dump(self.progress, f, indent=2)

    def _jsonl_path(self, category: str) -> Path:
        slug = (category or "uncategorized").lower().replace(" ", "_")
        return self.jsonl_dir / f"points_{slug}.jsonl"

    def is_saved(self, point_id: str) -> bool:
        return point_id in self.progress.get("saved_ids", [])

    def save_data_point(self, dp: CostDataPoint) -> bool:
        """
        Append a data point to its category file.

        Points without an ID are saved as a copy with a generated UUID;
        the caller's object is left untouched.

        Returns:
            True if saved successfully
        """
        if not dp.id:
            dp = dataclasses.replace(dp, id=uuid.uuid4().hex)

        try:
            with open(self._jsonl_path(dp.category), "a", encoding="utf-8") as f:
                f.write(json.dumps(dp.to_dict(), ensure_ascii=False) + "\n")

            if dp.id not in self.progress["saved_ids"]:
                self.progress["saved_ids"].append(dp.id)
                self.progress["total_count"] = len(self.progress["saved_ids"])
                self._save_progress()

            logger.debug(f"Saved data point: {dp.id}")
            return True

        except OSError as e:
            logger.error(f"Failed to save data point {dp.id}: {e}")
            return False

    def load_data_points(self, category: str | None = None) -> list[CostDataPoint]:
        """Load saved points, optionally for a single category."""
        if category is not None:
            path = self._jsonl_path(category)
            return read_data_points(path) if path.exists() else []
        points: list[CostDataPoint] = []
        for path in sorted(self.jsonl_dir.glob("*.jsonl")):
            points.extend(read_data_points(path))
        return points

    def get_all_ids(self) -> list[str]:
        return self.progress.get("saved_ids", [])

    def get_stats(self) -> dict:
        """Get storage statistics."""
        jsonl_files = list(self.jsonl_dir.glob("*.jsonl"))
        return {
            "jsonl_files": len(jsonl_files),
            "data_dir": str(self.data_dir),
            "saved_points": self.progress.get("total_count", 0),
        }
