"""
Duplicate and near-duplicate detection for scraped price observations.

Exact duplicates share a signature (a hash of the identifying fields and
the rounded price). Near-duplicates are the same item from the same source
and emirate, priced within a few percent and recorded close together in
time; these usually come from a listing being scraped twice.
"""

from __future__ import annotations

import hashlib
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from ..models import CostDataPoint, as_utc

logger = logging.getLogger(__name__)

NEAR_DUPLICATE = "near-duplicate"

# Weights for calculate_similarity(); they sum to 1.0
SIMILARITY_WEIGHTS = {
    "category": 0.2,
    "item_name": 0.3,
    "emirate": 0.2,
    "price": 0.2,
    "source": 0.1,
}


def generate_signature(dp: CostDataPoint) -> str:
    """
    Deterministic signature of a data point's identifying fields.

    Returns:
        First 16 hex characters of a SHA-256 digest
    """
    key = f"{dp.category}|{dp.item_name}|{dp.location.emirate}|{round(dp.price, 2):.2f}|{dp.source}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


def relative_price_difference(a: float, b: float) -> float:
    """|a - b| / max(a, b), or 0.0 when both prices are zero."""
    largest = max(a, b)
    if largest <= 0:
        return 0.0 if a == b else 1.0
    return abs(a - b) / largest


@dataclass
class DuplicateGroup:
    """A group of data points believed to describe the same observation."""

    indices: list[int]
    data_points: list[CostDataPoint] = field(repr=False)
    signature: str
    similarity: float

    @property
    def size(self) -> int:
        return len(self.indices)

    @property
    def is_exact(self) -> bool:
        return self.signature != NEAR_DUPLICATE

    def to_dict(self) -> dict:
        return {
            "indices": list(self.indices),
            "ids": [dp.id for dp in self.data_points],
            "signature": self.signature,
            "similarity": round(self.similarity, 4),
        }

    def __str__(self) -> str:
        kind = "exact" if self.is_exact else "near"
        return f"{kind} duplicate group {self.indices} ({self.similarity:.1%} similar)"


@dataclass
class DuplicateReport:
    """Summary of duplicates found in a batch."""

    total_points: int
    duplicate_groups: int
    total_duplicates: int
    duplicate_rate: float
    groups: list[DuplicateGroup] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_points": self.total_points,
            "duplicate_groups": self.duplicate_groups,
            "total_duplicates": self.total_duplicates,
            "duplicate_rate": round(self.duplicate_rate, 4),
            "groups": [g.to_dict() for g in self.groups],
        }


class DuplicateDetector:
    """
    Detect exact and near-duplicate data points in a batch.

    Usage:
        detector = DuplicateDetector(time_window=timedelta(hours=24))
        for group in detector.detect_duplicates(points):
            print(group)
    """

    def __init__(
        self,
        time_window: timedelta = timedelta(hours=24),
        price_threshold: float = 0.05,
    ):
        """
        Args:
            time_window: Maximum gap between recorded_at values of near-duplicates
            price_threshold: Maximum relative price difference (0-1) of near-duplicates
        """
        if time_window < timedelta(0):
            raise ValueError("time_window must not be negative")
        if not 0.0 <= price_threshold <= 1.0:
            raise ValueError("price_threshold must be between 0 and 1")
        self.time_window = time_window
        self.price_threshold = price_threshold

    def detect_duplicates(self, points: Sequence[CostDataPoint]) -> list[DuplicateGroup]:
        """
        Find duplicate groups.

        Returns:
            Exact-signature groups (similarity 1.0) followed by
            near-duplicate groups
        """
        if len(points) < 2:
            return []

        # Phase 1: exact duplicates via signature grouping (dicts keep first-seen order)
        by_signature: dict[str, list[int]] = defaultdict(list)
        for i, point in enumerate(points):
            by_signature[generate_signature(point)].append(i)

        groups = [
            DuplicateGroup(
                indices=indices,
                data_points=[points[i] for i in indices],
                signature=signature,
                similarity=1.0,
            )
            for signature, indices in by_signature.items()
            if len(indices) > 1
        ]

        # Phase 2: near-duplicates
        groups.extend(self._find_near_duplicates(points))

        if groups:
            logger.info(f"Found {len(groups)} duplicate groups in {len(points)} points")
        return groups

    def _find_near_duplicates(self, points: Sequence[CostDataPoint]) -> list[DuplicateGroup]:
        """Greedy single-pass grouping around the first unvisited point."""
        groups: list[DuplicateGroup] = []
        visited: set[int] = set()

        for i in range(len(points)):
            if i in visited:
                continue
            members = [i]
            for j in range(i + 1, len(points)):
                if j in visited:
                    continue
                if self.are_similar(points[i], points[j]):
                    members.append(j)
                    visited.add(j)

            if len(members) > 1:
                visited.add(i)
                groups.append(
                    DuplicateGroup(
                        indices=members,
                        data_points=[points[k] for k in members],
                        signature=NEAR_DUPLICATE,
                        similarity=self.calculate_similarity(points[members[0]], points[members[1]]),
                    )
                )

        return groups

    def are_similar(self, a: CostDataPoint, b: CostDataPoint) -> bool:
        """True if a and b look like the same observation scraped twice."""
        if a.category != b.category:
            return False
        if a.item_name != b.item_name:
            return False
        if a.location.emirate != b.location.emirate:
            return False
        if a.source != b.source:
            return False
        if relative_price_difference(a.price, b.price) > self.price_threshold:
            return False
        if a.recorded_at is None or b.recorded_at is None:
            return a.recorded_at is b.recorded_at
        return abs(as_utc(a.recorded_at) - as_utc(b.recorded_at)) <= self.time_window

    @staticmethod
    def calculate_similarity(a: CostDataPoint, b: CostDataPoint) -> float:
        """
        Weighted similarity of two data points.

        Returns:
            Score between 0.0 and 1.0
        """
        score = 0.0
        if a.category == b.category:
            score += SIMILARITY_WEIGHTS["category"]
        if a.item_name == b.item_name:
            score += SIMILARITY_WEIGHTS["item_name"]
        if a.location.emirate == b.location.emirate:
            score += SIMILARITY_WEIGHTS["emirate"]
        price_similarity = 1.0 - min(relative_price_difference(a.price, b.price), 1.0)
        score += SIMILARITY_WEIGHTS["price"] * price_similarity
        if a.source == b.source:
            score += SIMILARITY_WEIGHTS["source"]
        return score

    def is_duplicate(self, point: CostDataPoint, existing: Iterable[CostDataPoint]) -> bool:
        """True if `point` matches any existing data point exactly or nearly."""
        signature = generate_signature(point)
        for other in existing:
            if generate_signature(other) == signature or self.are_similar(point, other):
                return True
        return False

    @staticmethod
    def deduplicate(points: Sequence[CostDataPoint]) -> list[CostDataPoint]:
        """Drop exact duplicates, keeping the first occurrence of each signature."""
        seen: set[str] = set()
        unique: list[CostDataPoint] = []
        for point in points:
            signature = generate_signature(point)
            if signature not in seen:
                seen.add(signature)
                unique.append(point)
        return unique

    def generate_report(self, points: Sequence[CostDataPoint]) -> DuplicateReport:
        groups = self.detect_duplicates(points)
        total_duplicates = sum(g.size - 1 for g in groups)
        return DuplicateReport(
            total_points=len(points),
            duplicate_groups=len(groups),
            total_duplicates=total_duplicates,
            duplicate_rate=total_duplicates / len(points) if points else 0.0,
            groups=groups,
        )

    def stats(self) -> dict:
        """Detector settings."""
        return {
            "time_window_hours": self.time_window.total_seconds() / 3600,
            "price_threshold": self.price_threshold,
        }
