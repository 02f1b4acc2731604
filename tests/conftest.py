"""
Shared test fixtures for cost_scraper tests.

Provides a data-point factory, sample batches, a fake source and a
temporary data directory.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cost_scraper.adapters.base import BaseSource
from cost_scraper.models import CostDataPoint, Location

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


def make_point(**overrides) -> CostDataPoint:
    """
    A Housing data point that passes every built-in rule.

    Keyword arguments override fields; `emirate` is a shortcut for the
    location.
    """
    emirate = overrides.pop("emirate", "Dubai")
    fields = {
        "id": "bayut-001",
        "category": "Housing",
        "sub_category": "Apartment",
        "item_name": "1BR Apartment - Dubai Marina",
        "price": 85_000.0,
        "min_price": 80_000.0,
        "max_price": 90_000.0,
        "sample_size": 5,
        "location": Location(emirate=emirate, city="Dubai", area="Dubai Marina"),
        "recorded_at": datetime.now(timezone.utc) - timedelta(hours=1),
        "source": "Bayut",
        "source_url": "https://www.bayut.test/to-rent/apartments/dubai/dubai-marina/",
        "confidence": 0.8,
        "unit": "AED/year",
        "tags": {"rent", "apartment"},
        "attributes": {"bedrooms": 1, "area_sqft": 750, "furnished": True},
    }
    fields.update(overrides)
    return CostDataPoint(**fields)


def priced_points(prices, category="Food", **overrides) -> list[CostDataPoint]:
    """Distinct points of one category, one per price."""
    defaults = {
        "category": category,
        "source": "Carrefour",
        "unit": "AED/kg",
        "min_price": None,
        "max_price": None,
        "attributes": {},
    }
    defaults.update(overrides)
    return [
        make_point(id=f"p{i}", item_name=f"Item {i}", price=price, **defaults)
        for i, price in enumerate(prices)
    ]


class StaticSource(BaseSource):
    """A source that returns a fixed batch."""

    NAME = "static"

    def __init__(self, points):
        super().__init__()
        self.points = list(points)

    def fetch_data_points(self):
        return list(self.points)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def valid_point():
    return make_point()


@pytest.fixture
def invalid_point():
    """Fails several Error-severity rules."""
    return make_point(
        id="bad-001",
        item_name="",
        category="Housing",
        price=-5.0,
        emirate="Atlantis",
        min_price=None,
        max_price=None,
    )


@pytest.fixture
def sample_batch(valid_point, invalid_point):
    return [
        valid_point,
        make_point(id="bayut-002", item_name="2BR Apartment - JLT", price=110_000.0,
                   min_price=None, max_price=None),
        invalid_point,
    ]


@pytest.fixture
def tmp_data_dir(tmp_path):
    """Provide a temporary data directory."""
    return str(tmp_path / "data")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure environment variables don't leak between tests."""
    env_keys = [
        "DATA_DIR",
        "FEED_URL",
        "MIN_QUALITY_SCORE",
        "VALIDATION_ENABLE_OUTLIERS",
        "VALIDATION_ENABLE_DUPLICATES",
        "VALIDATION_ENABLE_FRESHNESS",
        "VALIDATION_STRICT_MODE",
        "VALIDATION_MAX_BATCH_SIZE",
        "OUTLIER_METHOD",
        "OUTLIER_THRESHOLD",
        "DUPLICATE_TIME_WINDOW_HOURS",
        "DUPLICATE_PRICE_THRESHOLD",
    ]
    for key in env_keys:
        monkeypatch.delenv(key, raising=False)
