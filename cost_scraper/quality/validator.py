"""
Rule-based validation and quality scoring for cost data points.

Runs the rule registry over each data point, then folds batch-level
outlier and duplicate signals and per-source freshness warnings into a
quality score and a pass/fail verdict.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..models import CostDataPoint
from .dedup import DuplicateDetector
from .freshness import FreshnessMonitor, FreshnessStatus
from .outliers import OutlierDetector, OutlierMethod
from .rules import DEFAULT_TABLES, ReferenceTables, Rule, RuleRegistry, Severity, default_rules

logger = logging.getLogger(__name__)

# Score deducted per rule failure
SEVERITY_PENALTIES = {
    Severity.ERROR: 0.3,
    Severity.WARNING: 0.1,
    Severity.INFO: 0.05,
}

OUTLIER_MULTIPLIER = 0.9
DUPLICATE_MULTIPLIER = 0.95

DEFAULT_MAX_BATCH_SIZE = 10_000

# Rule field name -> CostDataPoint attribute, for error diagnostics
_FIELD_ATTRIBUTES = {
    "ID": "id",
    "Category": "category",
    "SubCategory": "sub_category",
    "ItemName": "item_name",
    "Price": "price",
    "MinPrice": "min_price",
    "MaxPrice": "max_price",
    "MedianPrice": "median_price",
    "SampleSize": "sample_size",
    "Location": "location",
    "RecordedAt": "recorded_at",
    "Source": "source",
    "SourceURL": "source_url",
    "Confidence": "confidence",
    "Unit": "unit",
    "Tags": "tags",
    "Attributes": "attributes",
}


@dataclass
class ValidationError:
    """A single failed rule."""

    field: str
    message: str
    severity: Severity
    value: Any = None

    def __str__(self) -> str:
        return f"[{self.severity}] {self.field}: {self.message} (value: {self.value!r})"


@dataclass
class ValidationResult:
    """Result of validating a single data point."""

    data_point: CostDataPoint
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    score: float = 1.0
    is_valid: bool = True
    validated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def quality_score(self) -> float:
        """1.0 minus the penalty of every rule failure, floored at 0."""
        if not self.errors:
            return 1.0
        score = 1.0 - sum(SEVERITY_PENALTIES[e.severity] for e in self.errors)
        return max(score, 0.0)

    def penalize(self, multiplier: float, warning: str):
        """Apply a batch-level signal (outlier, duplicate)."""
        self.score *= multiplier
        self.warnings.append(warning)

    def issues(self, severity: Severity) -> list[ValidationError]:
        return [e for e in self.errors if e.severity == severity]

    def to_dict(self) -> dict:
        return {
            "id": self.data_point.id,
            "category": self.data_point.category,
            "item_name": self.data_point.item_name,
            "source": self.data_point.source,
            "is_valid": self.is_valid,
            "score": round(self.score, 4),
            "error_count": len(self.issues(Severity.ERROR)),
            "warning_count": len(self.issues(Severity.WARNING)),
            "errors": [
                {
                    "field": e.field,
                    "severity": e.severity.label,
                    "message": e.message,
                }
                for e in self.errors
            ],
            "warnings": list(self.warnings),
            "validated_at": self.validated_at.isoformat(),
        }


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ValidatorConfig:
    """Feature toggles and detector settings for DataPointValidator."""

    enable_outlier_detection: bool = True
    enable_duplicate_check: bool = True
    enable_freshness_check: bool = True
    strict_mode: bool = False  # Warning-severity failures also invalidate
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    outlier_method: OutlierMethod = OutlierMethod.IQR
    outlier_threshold: float | None = None
    duplicate_time_window: timedelta = timedelta(hours=24)
    duplicate_price_threshold: float = 0.05

    def __post_init__(self):
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")

    @classmethod
    def from_env(cls) -> ValidatorConfig:
        """Defaults overridden by VALIDATION_* / OUTLIER_* / DUPLICATE_* variables."""
        threshold = os.environ.get("OUTLIER_THRESHOLD")
        return cls(
            enable_outlier_detection=_env_bool("VALIDATION_ENABLE_OUTLIERS", True),
            enable_duplicate_check=_env_bool("VALIDATION_ENABLE_DUPLICATES", True),
            enable_freshness_check=_env_bool("VALIDATION_ENABLE_FRESHNESS", True),
            strict_mode=_env_bool("VALIDATION_STRICT_MODE", False),
            max_batch_size=int(os.environ.get("VALIDATION_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE)),
            outlier_method=OutlierMethod(os.environ.get("OUTLIER_METHOD", OutlierMethod.IQR.value)),
            outlier_threshold=float(threshold) if threshold else None,
            duplicate_time_window=timedelta(hours=float(os.environ.get("DUPLICATE_TIME_WINDOW_HOURS", 24))),
            duplicate_price_threshold=float(os.environ.get("DUPLICATE_PRICE_THRESHOLD", 0.05)),
        )


class DataPointValidator:
    """
    Validates scraped cost data points.

    Usage:
        validator = DataPointValidator()
        result = validator.validate_data_point(point)
        results = validator.validate_batch(points)
        accepted = [r.data_point for r in results if r.is_valid and r.score >= 0.7]
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        rules: Iterable[Rule] | None = None,
        tables: ReferenceTables = DEFAULT_TABLES,
        outlier_detector: OutlierDetector | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        freshness_monitor: FreshnessMonitor | None = None,
    ):
        """
        Args:
            config: Validator settings (defaults to ValidatorConfig())
            rules: Rules to apply (defaults to the built-in rules for `tables`)
            tables: Reference data for the built-in rules
            outlier_detector: Overrides the detector built from config
            duplicate_detector: Overrides the detector built from config
            freshness_monitor: Overrides the default per-source max ages
        """
        self.config = config or ValidatorConfig()
        # Own copy, so add_rule/remove_rule never leak into a shared registry
        self.registry = RuleRegistry(default_rules(tables) if rules is None else rules)
        self.outlier_detector = outlier_detector or OutlierDetector(
            self.config.outlier_method, self.config.outlier_threshold
        )
        self.duplicate_detector = duplicate_detector or DuplicateDetector(
            time_window=self.config.duplicate_time_window,
            price_threshold=self.config.duplicate_price_threshold,
        )
        self.freshness_monitor = freshness_monitor or FreshnessMonitor()

    def validate_data_point(self, dp: CostDataPoint) -> ValidationResult:
        """
        Validate a single data point.

        Raises:
            ValueError: if dp is None
        """
        if dp is None:
            raise ValueError("data point is None")

        result = ValidationResult(data_point=dp)

        for rule in self.registry.rules_for(dp.category):
            message = self._run_rule(rule, dp)
            if message is None:
                continue
            result.errors.append(
                ValidationError(
                    field=rule.field,
                    message=message,
                    severity=rule.severity,
                    value=_field_value(dp, rule.field),
                )
            )
            if rule.severity == Severity.ERROR:
                result.is_valid = False
            elif rule.severity == Severity.WARNING and self.config.strict_mode:
                result.is_valid = False

        if self.config.enable_freshness_check and dp.recorded_at is not None:
            status = self.freshness_monitor.check_freshness(dp.source, dp.recorded_at)
            if status is FreshnessStatus.STALE:
                result.warnings.append(f"Data is stale for source {dp.source}")

        result.score = result.quality_score()
        logger.debug(
            f"Validated {dp.id or dp.item_name!r}: valid={result.is_valid} "
            f"score={result.score:.2f} errors={len(result.errors)}"
        )
        return result

    def validate_batch(self, points: Sequence[CostDataPoint]) -> list[ValidationResult]:
        """
        Validate a batch, adding outlier and duplicate signals.

        Returns:
            One result per input data point, in input order

        Raises:
            ValueError: if the batch is empty, too large, or contains None
        """
        if not points:
            raise ValueError("empty batch")
        if len(points) > self.config.max_batch_size:
            raise ValueError(
                f"batch size {len(points)} exceeds maximum {self.config.max_batch_size}"
            )
        for i, dp in enumerate(points):
            if dp is None:
                raise ValueError(f"data point at index {i} is None")

        results = [self.validate_data_point(dp) for dp in points]

        # Batch-wide scans; folded in only once both are complete
        outlier_indices: list[int] = []
        if self.config.enable_outlier_detection:
            outlier_indices = self.outlier_detector.detect_outliers(points)

        duplicate_sizes: dict[int, int] = {}
        if self.config.enable_duplicate_check:
            for group in self.duplicate_detector.detect_duplicates(points):
                for idx in group.indices:
                    duplicate_sizes[idx] = max(duplicate_sizes.get(idx, 0), group.size)

        for idx in outlier_indices:
            results[idx].penalize(OUTLIER_MULTIPLIER, "Detected as statistical outlier")
        for idx, size in sorted(duplicate_sizes.items()):
            results[idx].penalize(DUPLICATE_MULTIPLIER, f"Potential duplicate (group size: {size})")

        valid = sum(1 for r in results if r.is_valid)
        logger.info(
            f"Validated batch of {len(results)}: {valid} valid, {len(results) - valid} invalid, "
            f"{len(outlier_indices)} outliers, {len(duplicate_sizes)} in duplicate groups"
        )
        return results

    def get_rules_for_category(self, category: str) -> list[Rule]:
        return self.registry.rules_for(category)

    def add_rule(self, rule: Rule):
        self.registry.add_rule(rule)

    def remove_rule(self, name: str) -> bool:
        return self.registry.remove_rule(name)

    def _run_rule(self, rule: Rule, dp: CostDataPoint) -> str | None:
        try:
            return rule.check(dp)
        except Exception as exc:
            logger.warning(f"Rule {rule.name} raised on {dp.id or dp.item_name!r}: {exc!r}")
            return f"rule {rule.name} could not be evaluated: {type(exc).__name__}: {exc}"


def _field_value(dp: CostDataPoint, field_name: str) -> Any:
    attr = _FIELD_ATTRIBUTES.get(field_name)
    return getattr(dp, attr) if attr else None


def validate_data_point(dp: CostDataPoint, strict: bool = False) -> ValidationResult:
    """
    Convenience function to validate a single data point with default rules.

    Args:
        dp: Data point
        strict: Treat warnings as validity failures

    Returns:
        ValidationResult
    """
    validator = DataPointValidator(ValidatorConfig(strict_mode=strict))
    return validator.validate_data_point(dp)
