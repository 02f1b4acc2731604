"""
Source freshness monitoring.

Each upstream source has an expected update cadence. Data younger than the
source's max age is fresh, data up to `stale_multiplier` times the max age
is stale, anything older is expired.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from ..models import CostDataPoint, as_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=7)
DEFAULT_STALE_MULTIPLIER = 2.0

DEFAULT_SOURCE_MAX_AGES: dict[str, timedelta] = {
    # Listing sites
    "Bayut": timedelta(days=7),
    "Dubizzle": timedelta(days=7),
    "PropertyFinder": timedelta(days=7),
    # Government utility tariffs
    "DEWA": timedelta(days=30),
    "SEWA": timedelta(days=30),
    "AADC": timedelta(days=30),
    "ADDC": timedelta(days=30),
    "FEWA": timedelta(days=30),
    # Transit and ride-hailing fares
    "RTA": timedelta(days=1),
    "Careem": timedelta(days=1),
    "Uber": timedelta(days=1),
    # Grocery
    "Carrefour": timedelta(days=7),
    "Lulu": timedelta(days=7),
    "Spinneys": timedelta(days=7),
    # Education fee schedules
    "KHDA": timedelta(days=365),
    "ADEK": timedelta(days=365),
}


class FreshnessStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.name


@dataclass
class FreshnessReport:
    """Freshness breakdown for one source's timestamps."""

    source: str
    total_points: int = 0
    fresh_count: int = 0
    stale_count: int = 0
    expired_count: int = 0
    freshness_rate: float = 0.0
    oldest_age: timedelta | None = None
    newest_age: timedelta | None = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "total_points": self.total_points,
            "fresh": self.fresh_count,
            "stale": self.stale_count,
            "expired": self.expired_count,
            "freshness_rate": round(self.freshness_rate, 4),
            "oldest_age_hours": _hours(self.oldest_age),
            "newest_age_hours": _hours(self.newest_age),
        }


def _hours(age: timedelta | None) -> float | None:
    return round(age.total_seconds() / 3600, 2) if age is not None else None


class FreshnessMap(dict):
    """source -> FreshnessStatus, with alerting helpers."""

    def get_stale_sources(self) -> list[str]:
        """Sources that are not fresh (stale or expired)."""
        return sorted(s for s, status in self.items() if status is not FreshnessStatus.FRESH)

    def get_fresh_sources(self) -> list[str]:
        return sorted(s for s, status in self.items() if status is FreshnessStatus.FRESH)

    def get_expired_sources(self) -> list[str]:
        return sorted(s for s, status in self.items() if status is FreshnessStatus.EXPIRED)


class FreshnessMonitor:
    """
    Classifies data age per source.

    Usage:
        monitor = FreshnessMonitor()
        monitor.set_max_age("MyScraper", timedelta(hours=6))
        status = monitor.check_freshness("RTA", recorded_at)
    """

    def __init__(
        self,
        max_ages: Mapping[str, timedelta] | None = None,
        default_max_age: timedelta = DEFAULT_MAX_AGE,
        stale_multiplier: float = DEFAULT_STALE_MULTIPLIER,
    ):
        """
        Args:
            max_ages: Per-source max ages (defaults to DEFAULT_SOURCE_MAX_AGES)
            default_max_age: Max age for sources without an entry
            stale_multiplier: Data older than max_age * stale_multiplier is expired
        """
        if stale_multiplier < 1:
            raise ValueError("stale_multiplier must be at least 1")
        self._max_ages: dict[str, timedelta] = {}
        for source, age in (DEFAULT_SOURCE_MAX_AGES if max_ages is None else max_ages).items():
            self.set_max_age(source, age)
        self.set_default_max_age(default_max_age)
        self.stale_multiplier = stale_multiplier

    def get_max_age(self, source: str) -> timedelta:
        return self._max_ages.get(source, self.default_max_age)

    def set_max_age(self, source: str, max_age: timedelta):
        if max_age <= timedelta(0):
            raise ValueError(f"max age for {source!r} must be positive")
        self._max_ages[source] = max_age

    def set_default_max_age(self, max_age: timedelta):
        if max_age <= timedelta(0):
            raise ValueError("default max age must be positive")
        self.default_max_age = max_age

    def check_freshness(
        self,
        source: str,
        recorded_at: datetime,
        now: datetime | None = None,
    ) -> FreshnessStatus:
        """Classify a timestamp against the source's max age."""
        age = _now(now) - as_utc(recorded_at)
        max_age = self.get_max_age(source)

        if age <= max_age:
            return FreshnessStatus.FRESH
        if age <= max_age * self.stale_multiplier:
            return FreshnessStatus.STALE
        return FreshnessStatus.EXPIRED

    def get_recommended_update_frequency(self, source: str) -> timedelta:
        """Re-scrape at half the max age so data never goes stale."""
        return self.get_max_age(source) / 2

    def needs_update(self, source: str, last_update: datetime, now: datetime | None = None) -> bool:
        return _now(now) - as_utc(last_update) > self.get_recommended_update_frequency(source)

    def generate_report(
        self,
        source: str,
        timestamps: Sequence[datetime],
        now: datetime | None = None,
    ) -> FreshnessReport:
        """Classify every timestamp of one source."""
        report = FreshnessReport(source=source, total_points=len(timestamps))
        if not timestamps:
            return report

        now = _now(now)
        ages = []
        for recorded_at in timestamps:
            ages.append(now - as_utc(recorded_at))
            status = self.check_freshness(source, recorded_at, now=now)
            if status is FreshnessStatus.FRESH:
                report.fresh_count += 1
            elif status is FreshnessStatus.STALE:
                report.stale_count += 1
            else:
                report.expired_count += 1

        report.oldest_age = max(ages)
        report.newest_age = min(ages)
        report.freshness_rate = report.fresh_count / report.total_points
        return report

    def generate_map(
        self,
        source_timestamps: Mapping[str, datetime],
        now: datetime | None = None,
    ) -> FreshnessMap:
        """Check the latest timestamp of many sources at once."""
        now = _now(now)
        freshness = FreshnessMap(
            (source, self.check_freshness(source, ts, now=now))
            for source, ts in source_timestamps.items()
        )
        stale = freshness.get_stale_sources()
        if stale:
            logger.warning(f"Stale sources: {', '.join(stale)}")
        return freshness

    @staticmethod
    def latest_by_source(points: Iterable[CostDataPoint]) -> dict[str, datetime]:
        """Most recent recorded_at per source, ignoring undated points."""
        latest: dict[str, datetime] = {}
        for dp in points:
            if dp.recorded_at is None:
                continue
            recorded_at = as_utc(dp.recorded_at)
            current = latest.get(dp.source)
            if current is None or recorded_at > current:
                latest[dp.source] = recorded_at
        return latest


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)
