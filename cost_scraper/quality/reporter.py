"""
Quality reporting and metrics aggregation.

Turns per-record validation results into dataset-level statistics: pass
rates, average quality score, the most common rule failures and how many
records carried outlier, duplicate or staleness warnings.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..models import CostDataPoint
from .rules import Severity
from .validator import DataPointValidator, ValidationResult

DEFAULT_MIN_SCORE = 0.7

# Keywords of the advisory warnings added by the validator
WARNING_KINDS = ("outlier", "duplicate", "stale")


@dataclass
class ValidationStats:
    """Headline numbers for a validation run."""

    total_validated: int
    valid_count: int
    invalid_count: int
    quality_score: float

    @classmethod
    def from_results(cls, results: Sequence[ValidationResult]) -> ValidationStats:
        if not results:
            return cls(total_validated=0, valid_count=0, invalid_count=0, quality_score=1.0)
        valid = sum(1 for r in results if r.is_valid)
        return cls(
            total_validated=len(results),
            valid_count=valid,
            invalid_count=len(results) - valid,
            quality_score=sum(r.score for r in results) / len(results),
        )

    def merge(self, other: ValidationStats) -> ValidationStats:
        """Combine the stats of two runs, weighting scores by record count."""
        total = self.total_validated + other.total_validated
        if total == 0:
            return ValidationStats(0, 0, 0, 1.0)
        score = (
            self.quality_score * self.total_validated + other.quality_score * other.total_validated
        ) / total
        return ValidationStats(
            total_validated=total,
            valid_count=self.valid_count + other.valid_count,
            invalid_count=self.invalid_count + other.invalid_count,
            quality_score=score,
        )

    def to_dict(self) -> dict:
        return {
            "total_validated": self.total_validated,
            "valid_count": self.valid_count,
            "invalid_count": self.invalid_count,
            "quality_score": round(self.quality_score, 4),
        }


def is_accepted(result: ValidationResult, min_score: float = DEFAULT_MIN_SCORE) -> bool:
    return result.is_valid and result.score >= min_score


def filter_accepted(
    results: Sequence[ValidationResult],
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[CostDataPoint]:
    """Data points that are valid and meet the score threshold."""
    return [r.data_point for r in results if is_accepted(r, min_score)]


@dataclass
class QualityReport:
    """Aggregated quality report for a batch."""

    generated_at: str
    total_points: int
    valid_points: int
    invalid_points: int
    accepted_points: int
    avg_score: float
    severity_counts: dict[str, int]
    top_issues: list[dict]
    warning_counts: dict[str, int]
    score_distribution: dict[str, int]
    category_counts: dict[str, int]

    @property
    def pass_rate(self) -> float:
        """Fraction of data points passing validation."""
        return self.valid_points / self.total_points if self.total_points else 0.0

    @property
    def stats(self) -> ValidationStats:
        return ValidationStats(
            total_validated=self.total_points,
            valid_count=self.valid_points,
            invalid_count=self.invalid_points,
            quality_score=self.avg_score if self.total_points else 1.0,
        )

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at,
            "summary": {
                "total_points": self.total_points,
                "valid_points": self.valid_points,
                "invalid_points": self.invalid_points,
                "accepted_points": self.accepted_points,
                "pass_rate": round(self.pass_rate, 4),
                "avg_score": round(self.avg_score, 4),
            },
            "severity_counts": self.severity_counts,
            "top_issues": self.top_issues,
            "warning_counts": self.warning_counts,
            "score_distribution": self.score_distribution,
            "category_counts": self.category_counts,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: str | Path):
        """Save report to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json())

    def summary_text(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Quality Report - {self.generated_at}",
            f"{'=' * 50}",
            f"Total points:    {self.total_points:,}",
            f"Valid:           {self.valid_points:,} ({self.pass_rate:.1%})",
            f"Invalid:         {self.invalid_points:,}",
            f"Accepted:        {self.accepted_points:,}",
            f"Avg score:       {self.avg_score:.3f}",
            "",
            "Score Distribution:",
        ]
        for bucket, count in self.score_distribution.items():
            bar = "█" * min(count, 40)
            lines.append(f"  {bucket:10s} {count:6,} {bar}")

        if any(self.warning_counts.values()):
            lines.append("")
            lines.append("Warnings:")
            for kind, count in self.warning_counts.items():
                lines.append(f"  {kind:10s} {count:,}")

        if self.top_issues:
            lines.append("")
            lines.append("Top Issues:")
            for issue in self.top_issues[:10]:
                lines.append(
                    f"  [{issue['severity']}] {issue['field']}: "
                    f"{issue['message']} (x{issue['count']})"
                )

        return "\n".join(lines)


class QualityReporter:
    """
    Generate quality reports from validation results.

    Usage:
        reporter = QualityReporter()
        report = reporter.analyze(points)
        print(report.summary_text())
        report.save("reports/quality.json")
    """

    def __init__(
        self,
        validator: DataPointValidator | None = None,
        min_score: float = DEFAULT_MIN_SCORE,
    ):
        """
        Args:
            validator: DataPointValidator instance (creates default if None)
            min_score: Score a valid data point needs to count as accepted
        """
        self.validator = validator or DataPointValidator()
        self.min_score = min_score

    def analyze(self, points: Sequence[CostDataPoint]) -> QualityReport:
        """
        Validate a batch and generate a report.

        An empty input yields an empty report instead of a validation error.
        """
        if not points:
            return self._aggregate([])
        return self._aggregate(self.validator.validate_batch(points))

    def analyze_results(self, results: Sequence[ValidationResult]) -> QualityReport:
        """Generate a report from pre-computed validation results."""
        return self._aggregate(results)

    def _aggregate(self, results: Sequence[ValidationResult]) -> QualityReport:
        generated_at = datetime.now(timezone.utc).isoformat()
        total = len(results)
        if total == 0:
            return QualityReport(
                generated_at=generated_at,
                total_points=0,
                valid_points=0,
                invalid_points=0,
                accepted_points=0,
                avg_score=0.0,
                severity_counts={},
                top_issues=[],
                warning_counts={kind: 0 for kind in WARNING_KINDS},
                score_distribution={},
                category_counts={},
            )

        valid_count = sum(1 for r in results if r.is_valid)
        accepted_count = sum(1 for r in results if is_accepted(r, self.min_score))
        avg_score = sum(r.score for r in results) / total

        severity_counts: Counter = Counter()
        issue_groups: Counter = Counter()
        issue_details: dict[tuple, dict] = {}
        for r in results:
            for error in r.errors:
                severity_counts[error.severity.label] += 1
                if error.severity == Severity.INFO:
                    continue
                key = (error.field, error.message, error.severity.label)
                issue_groups[key] += 1
                if key not in issue_details:
                    issue_details[key] = {
                        "field": error.field,
                        "message": error.message,
                        "severity": error.severity.label,
                    }

        top_issues = [
            {**issue_details[key], "count": count} for key, count in issue_groups.most_common(20)
        ]

        # Records carrying each kind of advisory warning
        warning_counts = {kind: 0 for kind in WARNING_KINDS}
        for r in results:
            text = " ".join(r.warnings).lower()
            for kind in WARNING_KINDS:
                if kind in text:
                    warning_counts[kind] += 1

        buckets = {"0.0-0.5": 0, "0.5-0.7": 0, "0.7-0.9": 0, "0.9-1.0": 0}
        for r in results:
            if r.score < 0.5:
                buckets["0.0-0.5"] += 1
            elif r.score < 0.7:
                buckets["0.5-0.7"] += 1
            elif r.score < 0.9:
                buckets["0.7-0.9"] += 1
            else:
                buckets["0.9-1.0"] += 1

        category_counts = Counter(r.data_point.category or "<none>" for r in results)

        return QualityReport(
            generated_at=generated_at,
            total_points=total,
            valid_points=valid_count,
            invalid_points=total - valid_count,
            accepted_points=accepted_count,
            avg_score=avg_score,
            severity_counts=dict(severity_counts),
            top_issues=top_issues,
            warning_counts=warning_counts,
            score_distribution=buckets,
            category_counts=dict(category_counts.most_common()),
        )

    def compare_reports(
        self,
        before: QualityReport,
        after: QualityReport,
    ) -> dict:
        """
        Compare two quality reports to track improvement.

        Args:
            before: Earlier report
            after: Later report

        Returns:
            Comparison metrics
        """
        return {
            "period": {
                "before": before.generated_at,
                "after": after.generated_at,
            },
            "points": {
                "before": before.total_points,
                "after": after.total_points,
                "delta": after.total_points - before.total_points,
            },
            "pass_rate": {
                "before": round(before.pass_rate, 4),
                "after": round(after.pass_rate, 4),
                "delta": round(after.pass_rate - before.pass_rate, 4),
            },
            "avg_score": {
                "before": round(before.avg_score, 4),
                "after": round(after.avg_score, 4),
                "delta": round(after.avg_score - before.avg_score, 4),
            },
        }
