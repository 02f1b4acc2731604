"""
Tests for the rule registry and built-in rules.
"""

import dataclasses
from datetime import timedelta

import pytest

from cost_scraper.quality.rules import (
    ALL_CATEGORIES,
    DEFAULT_PRICE_RANGES,
    DEFAULT_TABLES,
    DEFAULT_VALID_UNITS,
    PriceRange,
    ReferenceTables,
    Rule,
    RuleRegistry,
    Severity,
    category_rules,
    common_rules,
    default_rules,
)
from tests.conftest import make_point


def _rule(name, category="all", severity=Severity.WARNING):
    return Rule(name, category, "Price", severity, lambda dp: None)


def _failures(dp, category=None):
    registry = RuleRegistry(default_rules())
    return {
        rule.name: message
        for rule in registry.rules_for(category or dp.category)
        if (message := rule.check(dp)) is not None
    }


# ─── Severity ───────────────────────────────────────────────────────────


class TestSeverity:
    def test_ordering(self):
        assert Severity.INFO < Severity.WARNING < Severity.ERROR

    def test_string_rendering(self):
        assert str(Severity.ERROR) == "ERROR"
        assert Severity.WARNING.label == "warning"


class TestReferenceTables:
    def test_defaults(self):
        tables = ReferenceTables()
        assert tables.price_ranges is DEFAULT_PRICE_RANGES
        assert tables.valid_units is DEFAULT_VALID_UNITS
        assert tables == DEFAULT_TABLES

    def test_default_tables_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_TABLES.price_ranges["Housing"] = PriceRange(0, 1)

    def test_replace_keeps_other_tables(self):
        tables = dataclasses.replace(DEFAULT_TABLES, min_confidence=0.9)
        assert tables.valid_units is DEFAULT_VALID_UNITS
        assert DEFAULT_TABLES.min_confidence == 0.5


# ─── Registry ───────────────────────────────────────────────────────────


class TestRuleRegistry:
    def test_wildcard_rules_first(self):
        registry = RuleRegistry([
            _rule("housing_a", "Housing"),
            _rule("common_a"),
            _rule("food_a", "Food"),
            _rule("common_b"),
            _rule("housing_b", "Housing"),
        ])
        names = [r.name for r in registry.rules_for("Housing")]
        assert names == ["common_a", "common_b", "housing_a", "housing_b"]

    def test_unknown_category_gets_wildcard_only(self):
        registry = RuleRegistry([_rule("common"), _rule("housing", "Housing")])
        assert [r.name for r in registry.rules_for("Bitcoin")] == ["common"]

    def test_add_rule_appends(self):
        registry = RuleRegistry([_rule("first")])
        registry.add_rule(_rule("second"))
        assert registry.names() == ["first", "second"]
        assert len(registry) == 2

    def test_duplicate_name_rejected(self):
        registry = RuleRegistry([_rule("only")])
        with pytest.raises(ValueError, match="already registered"):
            registry.add_rule(_rule("only", "Food"))

    def test_remove_rule(self):
        registry = RuleRegistry([_rule("a"), _rule("b")])
        assert registry.remove_rule("a") is True
        assert registry.names() == ["b"]
        assert "a" not in registry

    def test_remove_missing_rule(self):
        registry = RuleRegistry([_rule("a")])
        assert registry.remove_rule("nope") is False
        assert len(registry) == 1

    def test_copy_is_independent(self):
        registry = RuleRegistry([_rule("a")])
        clone = registry.copy()
        clone.add_rule(_rule("b"))
        assert registry.names() == ["a"]

    def test_get(self):
        registry = RuleRegistry(default_rules())
        rule = registry.get("positive_price")
        assert rule is not None
        assert rule.severity == Severity.ERROR
        assert registry.get("missing") is None


# ─── Built-in rules ─────────────────────────────────────────────────────


class TestCommonRules:
    def test_valid_point_passes_everything(self):
        assert _failures(make_point()) == {}

    def test_all_common_rules_are_wildcard(self):
        assert all(r.category == ALL_CATEGORIES for r in common_rules())

    @pytest.mark.parametrize(
        "field_name, rule_name",
        [
            ("item_name", "required_item_name"),
            ("source", "required_source"),
        ],
    )
    def test_required_fields(self, field_name, rule_name):
        failures = _failures(make_point(**{field_name: ""}))
        assert rule_name in failures

    def test_missing_emirate(self):
        failures = _failures(make_point(emirate=""))
        assert "required_emirate" in failures
        assert "valid_emirate" in failures

    def test_missing_category(self):
        failures = _failures(make_point(category=""))
        assert "required_category" in failures
        assert "valid_category" in failures

    def test_invalid_category(self):
        failures = _failures(make_point(category="Crypto"))
        assert "invalid category" in failures["valid_category"]

    @pytest.mark.parametrize("emirate", sorted(DEFAULT_TABLES.valid_emirates))
    def test_all_emirates_accepted(self, emirate):
        assert "valid_emirate" not in _failures(make_point(emirate=emirate))

    @pytest.mark.parametrize("price", [0.0, -1.0, -85_000.0])
    def test_non_positive_price(self, price):
        failures = _failures(make_point(price=price, min_price=None, max_price=None))
        assert "positive_price" in failures

    def test_missing_timestamp(self):
        failures = _failures(make_point(recorded_at=None))
        assert failures["valid_timestamp"] == "recorded_at timestamp is required"

    def test_future_timestamp(self, now):
        failures = _failures(make_point(recorded_at=now + timedelta(hours=2)))
        assert "future" in failures["valid_timestamp"]

    def test_old_timestamp(self, now):
        failures = _failures(make_point(recorded_at=now - timedelta(days=400)))
        assert "older than 365 days" in failures["valid_timestamp"]

    def test_naive_timestamp_assigned_later(self, now):
        dp = make_point()
        dp.recorded_at = now.replace(tzinfo=None) - timedelta(hours=1)
        assert "valid_timestamp" not in _failures(dp)

    def test_min_greater_than_max(self):
        failures = _failures(make_point(min_price=95_000.0, max_price=90_000.0))
        assert "cannot be greater" in failures["min_max_price_consistency"]

    def test_price_outside_min_max(self):
        failures = _failures(make_point(price=99_000.0))
        assert "must be between" in failures["min_max_price_consistency"]

    def test_min_max_only_checked_when_both_set(self):
        failures = _failures(make_point(min_price=None, max_price=10.0))
        assert "min_max_price_consistency" not in failures

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_out_of_bounds(self, confidence):
        failures = _failures(make_point(confidence=confidence))
        assert "between 0 and 1" in failures["valid_confidence"]

    def test_low_confidence(self):
        failures = _failures(make_point(confidence=0.3))
        assert "low confidence" in failures["valid_confidence"]

    def test_zero_sample_size(self):
        failures = _failures(make_point(sample_size=0))
        assert "at least 1" in failures["sample_size_validation"]

    def test_single_sample_high_confidence_suspicious(self):
        failures = _failures(make_point(sample_size=1, confidence=0.9))
        assert "suspicious" in failures["sample_size_validation"]

    def test_single_sample_moderate_confidence_ok(self):
        failures = _failures(make_point(sample_size=1, confidence=0.7))
        assert "sample_size_validation" not in failures


class TestCategoryRules:
    def test_price_range_rule_for_every_category(self):
        names = {r.name for r in category_rules()}
        for category in DEFAULT_TABLES.price_ranges:
            assert f"{category.lower().replace(' ', '_')}_price_range" in names

    def test_price_range_rules_are_errors(self):
        ranges = [r for r in category_rules() if r.name.endswith("_price_range")]
        assert all(r.severity == Severity.ERROR for r in ranges)

    @pytest.mark.parametrize(
        "category, price, unit, source",
        [
            ("Housing", 9_999.0, "AED/year", "Bayut"),
            ("Utilities", 2_500.0, "AED/month", "DEWA"),
            ("Transportation", 150.0, "AED/trip", "RTA"),
            ("Food", 0.1, "AED/kg", "Carrefour"),
            ("Education", 250_000.0, "AED/year", "KHDA"),
        ],
    )
    def test_price_out_of_range(self, category, price, unit, source):
        dp = make_point(category=category, price=price, unit=unit, source=source,
                        min_price=None, max_price=None)
        slug = category.lower()
        assert "out of range" in _failures(dp)[f"{slug}_price_range"]

    def test_range_bounds_inclusive(self):
        dp = make_point(price=10_000.0, min_price=None, max_price=None)
        assert "housing_price_range" not in _failures(dp)

    def test_housing_missing_bedrooms(self):
        dp = make_point(attributes={"area_sqft": 700})
        assert "bedrooms" in _failures(dp)["housing_attributes"]

    def test_housing_missing_area(self):
        dp = make_point(attributes={"bedrooms": 2})
        assert "area_sqft" in _failures(dp)["housing_attributes"]

    def test_housing_unit(self):
        dp = make_point(unit="AED/week")
        assert "unexpected unit" in _failures(dp)["housing_unit"]

    def test_utilities_provider_case_insensitive(self):
        dp = make_point(category="Utilities", price=450.0, unit="AED/month",
                        source="sewa-sharjah", min_price=None, max_price=None)
        assert "utilities_provider" not in _failures(dp)

    def test_utilities_unknown_provider(self):
        dp = make_point(category="Utilities", price=450.0, unit="AED/month",
                        source="PowerCo", min_price=None, max_price=None)
        assert "utilities_provider" in _failures(dp)

    def test_transportation_source(self):
        dp = make_point(category="Transportation", price=12.0, unit="AED/trip",
                        source="Hala Taxi", min_price=None, max_price=None)
        assert "transportation_source" in _failures(dp)

    def test_education_unit(self):
        dp = make_point(category="Education", price=45_000.0, unit="AED/term",
                        source="KHDA", min_price=None, max_price=None)
        assert _failures(dp) == {}

    def test_custom_tables(self):
        tables = dataclasses.replace(
            DEFAULT_TABLES,
            price_ranges={"Housing": PriceRange(1, 100)},
        )
        registry = RuleRegistry(default_rules(tables))
        rule = registry.get("housing_price_range")
        assert rule.check(make_point()) is not None
        # Default tables are untouched
        assert RuleRegistry(default_rules()).get("housing_price_range").check(make_point()) is None
