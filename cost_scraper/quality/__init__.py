"""
Data quality validation for scraped cost data.

Provides rule-based validation, statistical outlier detection, duplicate
detection, source freshness monitoring and quality reporting.
"""

from .dedup import DuplicateDetector, DuplicateGroup, DuplicateReport, generate_signature
from .freshness import FreshnessMap, FreshnessMonitor, FreshnessReport, FreshnessStatus
from .outliers import OutlierDetector, OutlierInfo, OutlierMethod
from .reporter import QualityReport, QualityReporter, ValidationStats, filter_accepted
from .rules import ReferenceTables, Rule, RuleRegistry, Severity, default_rules
from .validator import (
    DataPointValidator,
    ValidationError,
    ValidationResult,
    ValidatorConfig,
    validate_data_point,
)

__all__ = [
    "DataPointValidator",
    "DuplicateDetector",
    "DuplicateGroup",
    "DuplicateReport",
    "FreshnessMap",
    "FreshnessMonitor",
    "FreshnessReport",
    "FreshnessStatus",
    "OutlierDetector",
    "OutlierInfo",
    "OutlierMethod",
    "QualityReport",
    "QualityReporter",
    "ReferenceTables",
    "Rule",
    "RuleRegistry",
    "Severity",
    "ValidationError",
    "ValidationResult",
    "ValidationStats",
    "ValidatorConfig",
    "default_rules",
    "filter_accepted",
    "generate_signature",
    "validate_data_point",
]
