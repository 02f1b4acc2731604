"""
Validation rules for cost data points.

A rule is a named predicate scoped to a category (or to every category via
the "all" wildcard). Predicates return None when the data point passes and
an error message when it does not. They must not modify the data point or
touch shared state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from types import MappingProxyType

from ..models import CostDataPoint, as_utc

ALL_CATEGORIES = "all"


class Severity(IntEnum):
    """Rule severity. Ordered: INFO < WARNING < ERROR."""

    INFO = 0
    WARNING = 1
    ERROR = 2

    def __str__(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class PriceRange:
    """Inclusive price bounds, in the source currency."""

    min: float
    max: float

    def __contains__(self, price: float) -> bool:
        return self.min <= price <= self.max


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


# Annual rent, monthly bills, per trip, per item, annual fees...
DEFAULT_PRICE_RANGES: Mapping[str, PriceRange] = _frozen(
    {
        "Housing": PriceRange(10_000, 5_000_000),
        "Utilities": PriceRange(50, 2_000),
        "Transportation": PriceRange(1, 100),
        "Food": PriceRange(0.5, 500),
        "Education": PriceRange(5_000, 200_000),
        "Entertainment": PriceRange(10, 5_000),
        "Healthcare": PriceRange(50, 50_000),
        "Shopping": PriceRange(1, 10_000),
        "Communications": PriceRange(50, 1_000),
        "Personal Care": PriceRange(10, 2_000),
    }
)

VALID_CATEGORIES = frozenset(DEFAULT_PRICE_RANGES)

VALID_EMIRATES = frozenset(
    {
        "Dubai",
        "Abu Dhabi",
        "Sharjah",
        "Ajman",
        "Umm Al Quwain",
        "Ras Al Khaimah",
        "Fujairah",
    }
)

DEFAULT_VALID_UNITS: Mapping[str, frozenset[str]] = _frozen(
    {
        "Housing": frozenset({"AED/year", "AED/month"}),
        "Utilities": frozenset({"AED/month", "AED/kWh", "AED/unit"}),
        "Education": frozenset({"AED/year", "AED/semester", "AED/term"}),
    }
)

UTILITY_PROVIDERS = ("DEWA", "SEWA", "AADC", "ADDC", "FEWA")
TRANSPORT_SOURCES = ("RTA", "Careem", "Uber", "Emirates Transport")
HOUSING_ATTRIBUTES = ("bedrooms", "area_sqft")


@dataclass(frozen=True)
class ReferenceTables:
    """
    Reference data the built-in rules check against.

    Build a modified copy with dataclasses.replace() to run a different
    configuration side by side with the defaults.
    """

    price_ranges: Mapping[str, PriceRange] = field(default_factory=lambda: DEFAULT_PRICE_RANGES)
    valid_categories: frozenset[str] = VALID_CATEGORIES
    valid_emirates: frozenset[str] = VALID_EMIRATES
    valid_units: Mapping[str, frozenset[str]] = field(default_factory=lambda: DEFAULT_VALID_UNITS)
    utility_providers: tuple[str, ...] = UTILITY_PROVIDERS
    transport_sources: tuple[str, ...] = TRANSPORT_SOURCES
    housing_attributes: tuple[str, ...] = HOUSING_ATTRIBUTES
    max_record_age: timedelta = timedelta(days=365)
    min_confidence: float = 0.5
    single_sample_max_confidence: float = 0.7


DEFAULT_TABLES = ReferenceTables()


@dataclass(frozen=True)
class Rule:
    """A named validation predicate."""

    name: str
    category: str
    field: str
    severity: Severity
    check: Callable[[CostDataPoint], str | None] = field(compare=False)

    def applies_to(self, category: str) -> bool:
        return self.category == ALL_CATEGORIES or self.category == category


class RuleRegistry:
    """
    Ordered collection of rules keyed by unique name.

    Usage:
        registry = RuleRegistry(default_rules())
        for rule in registry.rules_for("Housing"):
            ...
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: list[Rule] = []
        for rule in rules:
            self.add_rule(rule)

    def rules_for(self, category: str) -> list[Rule]:
        """Wildcard rules first, then the category's own, each in registration order."""
        wildcard = [r for r in self._rules if r.category == ALL_CATEGORIES]
        specific = [r for r in self._rules if r.category != ALL_CATEGORIES and r.category == category]
        return wildcard + specific

    def add_rule(self, rule: Rule):
        if self.get(rule.name) is not None:
            raise ValueError(f"Rule already registered: {rule.name}")
        self._rules.append(rule)

    def remove_rule(self, name: str) -> bool:
        """Remove the rule with this name. Returns False if there was none."""
        for i, rule in enumerate(self._rules):
            if rule.name == name:
                del self._rules[i]
                return True
        return False

    def get(self, name: str) -> Rule | None:
        for rule in self._rules:
            if rule.name == name:
                return rule
        return None

    def names(self) -> list[str]:
        return [r.name for r in self._rules]

    def copy(self) -> RuleRegistry:
        return RuleRegistry(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules))

    def __contains__(self, name: object) -> bool:
        return any(r.name == name for r in self._rules)


# ─── Built-in rules ─────────────────────────────────────────────────────


def _required(attr: str, label: str) -> Callable[[CostDataPoint], str | None]:
    def check(dp: CostDataPoint) -> str | None:
        if not getattr(dp, attr):
            return f"{label} is required"
        return None

    return check


def _emirate_required(dp: CostDataPoint) -> str | None:
    if not dp.location.emirate:
        return "emirate is required"
    return None


def _positive_price(dp: CostDataPoint) -> str | None:
    if dp.price <= 0:
        return f"price must be positive: {dp.price}"
    return None


def _min_max_consistency(dp: CostDataPoint) -> str | None:
    if dp.min_price is None or dp.max_price is None:
        return None
    if dp.min_price > dp.max_price:
        return f"min_price ({dp.min_price}) cannot be greater than max_price ({dp.max_price})"
    if not dp.min_price <= dp.price <= dp.max_price:
        return (
            f"price ({dp.price}) must be between min_price ({dp.min_price}) "
            f"and max_price ({dp.max_price})"
        )
    return None


def common_rules(tables: ReferenceTables = DEFAULT_TABLES) -> list[Rule]:
    """Rules applied to every data point regardless of category."""

    def valid_category(dp: CostDataPoint) -> str | None:
        if dp.category not in tables.valid_categories:
            return f"invalid category: {dp.category}"
        return None

    def valid_emirate(dp: CostDataPoint) -> str | None:
        if dp.location.emirate not in tables.valid_emirates:
            return f"invalid emirate: {dp.location.emirate}"
        return None

    def valid_timestamp(dp: CostDataPoint) -> str | None:
        if dp.recorded_at is None:
            return "recorded_at timestamp is required"
        now = datetime.now(timezone.utc)
        recorded_at = as_utc(dp.recorded_at)
        if recorded_at > now:
            return "recorded_at cannot be in the future"
        if now - recorded_at > tables.max_record_age:
            return f"data is older than {tables.max_record_age.days} days"
        return None

    def valid_confidence(dp: CostDataPoint) -> str | None:
        if not 0.0 <= dp.confidence <= 1.0:
            return f"confidence must be between 0 and 1: {dp.confidence}"
        if dp.confidence < tables.min_confidence:
            return f"low confidence score: {dp.confidence}"
        return None

    def valid_sample_size(dp: CostDataPoint) -> str | None:
        if dp.sample_size < 1:
            return "sample size should be at least 1"
        if dp.sample_size == 1 and dp.confidence > tables.single_sample_max_confidence:
            return f"high confidence ({dp.confidence}) with sample size of 1 is suspicious"
        return None

    return [
        Rule("required_item_name", ALL_CATEGORIES, "ItemName", Severity.ERROR, _required("item_name", "item name")),
        Rule("required_category", ALL_CATEGORIES, "Category", Severity.ERROR, _required("category", "category")),
        Rule("required_source", ALL_CATEGORIES, "Source", Severity.ERROR, _required("source", "source")),
        Rule("required_emirate", ALL_CATEGORIES, "Location", Severity.ERROR, _emirate_required),
        Rule("valid_category", ALL_CATEGORIES, "Category", Severity.ERROR, valid_category),
        Rule("valid_emirate", ALL_CATEGORIES, "Location", Severity.ERROR, valid_emirate),
        Rule("positive_price", ALL_CATEGORIES, "Price", Severity.ERROR, _positive_price),
        Rule("valid_timestamp", ALL_CATEGORIES, "RecordedAt", Severity.ERROR, valid_timestamp),
        Rule("min_max_price_consistency", ALL_CATEGORIES, "Price", Severity.ERROR, _min_max_consistency),
        Rule("valid_confidence", ALL_CATEGORIES, "Confidence", Severity.WARNING, valid_confidence),
        Rule("sample_size_validation", ALL_CATEGORIES, "SampleSize", Severity.WARNING, valid_sample_size),
    ]


def _price_range_rule(category: str, bounds: PriceRange) -> Rule:
    def check(dp: CostDataPoint) -> str | None:
        if dp.price not in bounds:
            return (
                f"{category.lower()} price out of range: {dp.price} "
                f"(expected {bounds.min}-{bounds.max})"
            )
        return None

    slug = category.lower().replace(" ", "_")
    return Rule(f"{slug}_price_range", category, "Price", Severity.ERROR, check)


def _unit_rule(category: str, units: frozenset[str]) -> Rule:
    def check(dp: CostDataPoint) -> str | None:
        if dp.unit not in units:
            expected = " or ".join(sorted(units))
            return f"unexpected unit for {category.lower()}: {dp.unit!r} (expected {expected})"
        return None

    slug = category.lower().replace(" ", "_")
    return Rule(f"{slug}_unit", category, "Unit", Severity.WARNING, check)


def category_rules(tables: ReferenceTables = DEFAULT_TABLES) -> list[Rule]:
    """Price-range, attribute, unit and provider checks for specific categories."""
    rules = [_price_range_rule(cat, bounds) for cat, bounds in tables.price_ranges.items()]

    def housing_attributes(dp: CostDataPoint) -> str | None:
        for key in tables.housing_attributes:
            if key not in dp.attributes:
                return f"missing '{key}' attribute for housing data"
        return None

    def utilities_provider(dp: CostDataPoint) -> str | None:
        source = dp.source.upper()
        if not any(provider.upper() in source for provider in tables.utility_providers):
            return f"unexpected utility provider: {dp.source}"
        return None

    def transportation_source(dp: CostDataPoint) -> str | None:
        if not any(known in dp.source for known in tables.transport_sources):
            return f"unexpected transportation source: {dp.source}"
        return None

    rules.append(Rule("housing_attributes", "Housing", "Attributes", Severity.WARNING, housing_attributes))
    rules.append(Rule("utilities_provider", "Utilities", "Source", Severity.WARNING, utilities_provider))
    rules.append(Rule("transportation_source", "Transportation", "Source", Severity.WARNING, transportation_source))
    rules.extend(_unit_rule(cat, units) for cat, units in tables.valid_units.items())
    return rules


def default_rules(tables: ReferenceTables = DEFAULT_TABLES) -> list[Rule]:
    """All built-in rules: common rules followed by category rules."""
    return common_rules(tables) + category_rules(tables)
