"""
Statistical outlier detection for scraped prices.

Prices are compared only within their own category: a 50,000 AED rent is
normal, a 50,000 AED taxi fare is not. Three interchangeable tests are
supported (IQR, z-score and modified z-score).
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from ..models import CostDataPoint

logger = logging.getLogger(__name__)

MIN_PARTITION_SIZE = 3

# Scales MAD to the standard deviation of a normal distribution
MODIFIED_Z_CONSTANT = 0.6745


class OutlierMethod(str, Enum):
    """Outlier test."""

    IQR = "iqr"
    ZSCORE = "zscore"
    MODIFIED_ZSCORE = "modified_zscore"


DEFAULT_THRESHOLDS = {
    OutlierMethod.IQR: 1.5,
    OutlierMethod.ZSCORE: 3.0,
    OutlierMethod.MODIFIED_ZSCORE: 3.5,
}


@dataclass
class OutlierInfo:
    """Diagnostic record for a flagged data point."""

    index: int
    data_point: CostDataPoint
    method: OutlierMethod
    score: float
    reason: str = "Statistical outlier detected"

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "id": self.data_point.id,
            "category": self.data_point.category,
            "item_name": self.data_point.item_name,
            "price": self.data_point.price,
            "method": self.method.value,
            "score": round(self.score, 4) if math.isfinite(self.score) else None,
            "reason": self.reason,
        }


# ─── Statistics helpers ─────────────────────────────────────────────────


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of pre-sorted data (p in [0, 1])."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    if n == 1:
        return sorted_values[0]

    rank = p * (n - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return sorted_values[lower]
    weight = rank - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def quartiles(values: Sequence[float]) -> tuple[float, float]:
    """Return (Q1, Q3)."""
    ordered = sorted(values)
    return percentile(ordered, 0.25), percentile(ordered, 0.75)


def median_absolute_deviation(values: Sequence[float], center: float) -> float:
    return statistics.median(abs(v - center) for v in values)


# ─── Detector ───────────────────────────────────────────────────────────


class OutlierDetector:
    """
    Flags data points whose price is anomalous within its category.

    Usage:
        detector = OutlierDetector(OutlierMethod.IQR, threshold=1.5)
        indices = detector.detect_outliers(points)
    """

    def __init__(
        self,
        method: OutlierMethod | str = OutlierMethod.IQR,
        threshold: float | None = None,
    ):
        """
        Args:
            method: Outlier test to apply
            threshold: Test threshold (defaults depend on the method)
        """
        try:
            self.method = OutlierMethod(method)
        except ValueError:
            choices = ", ".join(m.value for m in OutlierMethod)
            raise ValueError(f"Unknown outlier method: {method!r} (choose from {choices})") from None
        self.threshold = DEFAULT_THRESHOLDS[self.method] if threshold is None else float(threshold)
        if self.threshold < 0:
            raise ValueError("threshold must be non-negative")

    def detect_outliers(self, points: Sequence[CostDataPoint]) -> list[int]:
        """
        Find outliers in a batch.

        Returns:
            Indices into `points`, ascending
        """
        return [index for index, _ in self._scan(points)]

    def detect_outliers_with_info(self, points: Sequence[CostDataPoint]) -> list[OutlierInfo]:
        """Like detect_outliers, with the data point and test statistic for each hit."""
        return [
            OutlierInfo(index=index, data_point=points[index], method=self.method, score=score)
            for index, score in self._scan(points)
        ]

    def _scan(self, points: Sequence[CostDataPoint]) -> list[tuple[int, float]]:
        if len(points) < MIN_PARTITION_SIZE:
            return []

        partitions: dict[str, list[int]] = defaultdict(list)
        for i, point in enumerate(points):
            partitions[point.category].append(i)

        hits: list[tuple[int, float]] = []
        for category, indices in partitions.items():
            if len(indices) < MIN_PARTITION_SIZE:
                logger.debug(f"Skipping outlier scan for {category!r}: only {len(indices)} points")
                continue
            prices = [points[i].price for i in indices]
            for offset, score in self._flag(prices):
                hits.append((indices[offset], score))

        hits.sort()
        if hits:
            logger.info(f"Outlier scan ({self.method.value}) flagged {len(hits)} of {len(points)} points")
        return hits

    def _flag(self, prices: list[float]) -> list[tuple[int, float]]:
        """Return (position, statistic) for each flagged price."""
        if self.method is OutlierMethod.IQR:
            return self._flag_iqr(prices)
        if self.method is OutlierMethod.ZSCORE:
            return self._flag_zscore(prices)
        return self._flag_modified_zscore(prices)

    def _flag_iqr(self, prices: list[float]) -> list[tuple[int, float]]:
        q1, q3 = quartiles(prices)
        iqr = q3 - q1
        lower = q1 - self.threshold * iqr
        upper = q3 + self.threshold * iqr

        flagged = []
        for i, price in enumerate(prices):
            if price < lower or price > upper:
                # Distance past the fence, in IQRs
                distance = (lower - price) if price < lower else (price - upper)
                flagged.append((i, distance / iqr if iqr else math.inf))
        return flagged

    def _flag_zscore(self, prices: list[float]) -> list[tuple[int, float]]:
        mean = statistics.fmean(prices)
        std_dev = statistics.pstdev(prices, mu=mean)
        if std_dev == 0:
            return []

        flagged = []
        for i, price in enumerate(prices):
            z = abs(price - mean) / std_dev
            if z > self.threshold:
                flagged.append((i, z))
        return flagged

    def _flag_modified_zscore(self, prices: list[float]) -> list[tuple[int, float]]:
        median = statistics.median(prices)
        mad = median_absolute_deviation(prices, median)
        if mad == 0:
            return []

        flagged = []
        for i, price in enumerate(prices):
            z = abs(MODIFIED_Z_CONSTANT * (price - median) / mad)
            if z > self.threshold:
                flagged.append((i, z))
        return flagged
