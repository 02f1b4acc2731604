"""
Data model for scraped cost observations.

A CostDataPoint is one observed price for a named item, scoped to an
emirate and a point in time. Scrapers create them, the quality engine
inspects them, and the data store persists the accepted ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

# Closed set of types allowed in the schema-less attribute bag
AttributeValue = Union[bool, int, float, str]

_ATTRIBUTE_TYPES = (bool, int, float, str)


def as_utc(value: datetime | None) -> datetime | None:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        # fromisoformat() only learned "Z" in 3.11
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return as_utc(datetime.fromisoformat(value))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class GeoPoint:
    """Geographic coordinates."""

    lat: float
    lon: float


@dataclass
class Location:
    """Where a price was observed. Only the emirate is required."""

    emirate: str = ""
    city: str = ""
    area: str = ""
    coordinates: GeoPoint | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"emirate": self.emirate}
        if self.city:
            data["city"] = self.city
        if self.area:
            data["area"] = self.area
        if self.coordinates is not None:
            data["coordinates"] = {"lat": self.coordinates.lat, "lon": self.coordinates.lon}
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> Location:
        data = data or {}
        coords = data.get("coordinates")
        return cls(
            emirate=data.get("emirate", ""),
            city=data.get("city", ""),
            area=data.get("area", ""),
            coordinates=GeoPoint(float(coords["lat"]), float(coords["lon"])) if coords else None,
        )


@dataclass
class CostDataPoint:
    """
    A single price observation harvested from an upstream source.

    Optional prices are None when the source does not publish them, and
    recorded_at is None when the scraper could not determine it. The
    quality engine reads these objects but never modifies them.
    """

    item_name: str
    category: str
    price: float
    location: Location = field(default_factory=Location)
    source: str = ""
    id: str = ""
    sub_category: str = ""
    min_price: float | None = None
    max_price: float | None = None
    median_price: float | None = None
    sample_size: int = 0
    recorded_at: datetime | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    source_url: str = ""
    confidence: float = 0.0
    unit: str = ""
    tags: frozenset[str] = field(default_factory=frozenset)
    attributes: dict[str, AttributeValue] = field(default_factory=dict)

    def __post_init__(self):
        self.recorded_at = as_utc(self.recorded_at)
        self.valid_from = as_utc(self.valid_from)
        self.valid_to = as_utc(self.valid_to)
        if not isinstance(self.tags, frozenset):
            self.tags = frozenset(self.tags)
        for key, value in self.attributes.items():
            if not isinstance(value, _ATTRIBUTE_TYPES):
                raise ValueError(
                    f"Attribute {key!r} has unsupported type {type(value).__name__} "
                    "(expected number, string or boolean)"
                )

    @property
    def emirate(self) -> str:
        return self.location.emirate

    def to_dict(self) -> dict:
        """JSON-serialisable representation."""
        return {
            "id": self.id,
            "category": self.category,
            "sub_category": self.sub_category,
            "item_name": self.item_name,
            "price": self.price,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "median_price": self.median_price,
            "sample_size": self.sample_size,
            "location": self.location.to_dict(),
            "recorded_at": _format_timestamp(self.recorded_at),
            "valid_from": _format_timestamp(self.valid_from),
            "valid_to": _format_timestamp(self.valid_to),
            "source": self.source,
            "source_url": self.source_url,
            "confidence": self.confidence,
            "unit": self.unit,
            "tags": sorted(self.tags),
            "attributes": dict(self.attributes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> CostDataPoint:
        """
        Build a data point from its JSON shape.

        Raises:
            ValueError: if a timestamp or attribute value cannot be used
        """
        return cls(
            id=str(data.get("id") or ""),
            category=data.get("category", ""),
            sub_category=data.get("sub_category", ""),
            item_name=data.get("item_name", ""),
            price=float(data.get("price") or 0.0),
            min_price=_optional_float(data.get("min_price")),
            max_price=_optional_float(data.get("max_price")),
            median_price=_optional_float(data.get("median_price")),
            sample_size=int(data.get("sample_size") or 0),
            location=Location.from_dict(data.get("location")),
            recorded_at=parse_timestamp(data.get("recorded_at")),
            valid_from=parse_timestamp(data.get("valid_from")),
            valid_to=parse_timestamp(data.get("valid_to")),
            source=data.get("source", ""),
            source_url=data.get("source_url", ""),
            confidence=float(data.get("confidence") or 0.0),
            unit=data.get("unit", ""),
            tags=frozenset(data.get("tags") or ()),
            attributes=dict(data.get("attributes") or {}),
        )
