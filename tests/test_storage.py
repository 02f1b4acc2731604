"""
Tests for data point storage.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from cost_scraper.core.storage import DataStore, read_data_points, write_data_points
from cost_scraper.models import CostDataPoint, GeoPoint, Location
from tests.conftest import make_point


class TestDataPointSerialization:
    def test_to_dict_from_dict(self, valid_point):
        restored = CostDataPoint.from_dict(json.loads(json.dumps(valid_point.to_dict())))
        assert restored == valid_point

    def test_from_dict_defaults(self):
        dp = CostDataPoint.from_dict({"item_name": "Milk 1L", "category": "Food", "price": "6.5"})
        assert dp.price == 6.5
        assert dp.min_price is None
        assert dp.sample_size == 0
        assert dp.confidence == 0.0
        assert dp.recorded_at is None
        assert dp.location == Location()

    def test_zulu_timestamp(self):
        dp = CostDataPoint.from_dict(
            {"item_name": "x", "category": "Food", "price": 1, "recorded_at": "2024-03-01T08:00:00Z"}
        )
        assert dp.recorded_at.utcoffset().total_seconds() == 0
        assert dp.recorded_at.hour == 8

    def test_coordinates(self):
        location = Location(emirate="Dubai", coordinates=GeoPoint(25.08, 55.14))
        assert Location.from_dict(location.to_dict()) == location

    def test_bad_attribute_type(self):
        with pytest.raises(ValueError, match="unsupported type"):
            make_point(attributes={"amenities": ["pool", "gym"]})

    def test_tags_frozen(self):
        dp = make_point(tags=["rent", "rent", "villa"])
        assert dp.tags == frozenset({"rent", "villa"})

    def test_emirate_property(self):
        assert make_point(emirate="Fujairah").emirate == "Fujairah"


class TestReadWrite:
    def test_json_file(self, tmp_path, sample_batch):
        path = tmp_path / "points.json"
        write_data_points(path, sample_batch)
        assert read_data_points(path) == sample_batch

    def test_jsonl_file(self, tmp_path, sample_batch):
        path = tmp_path / "nested" / "points.jsonl"
        write_data_points(path, sample_batch)
        assert len(path.read_text(encoding="utf-8").splitlines()) == 3
        assert read_data_points(path) == sample_batch

    def test_wrapped_json(self, tmp_path, valid_point):
        path = tmp_path / "feed.json"
        path.write_text(json.dumps({"data_points": [valid_point.to_dict()]}), encoding="utf-8")
        assert read_data_points(path) == [valid_point]

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('"nope"', encoding="utf-8")
        with pytest.raises(ValueError):
            read_data_points(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_data_points(tmp_path / "missing.json")


class TestDataStoreInit:
    def test_creates_directories(self, tmp_data_dir):
        DataStore(tmp_data_dir)
        assert (Path(tmp_data_dir) / "jsonl").is_dir()

    def test_data_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path / "envdata"))
        store = DataStore()
        assert store.data_dir == tmp_path / "envdata"

    def test_new_progress(self, tmp_data_dir):
        store = DataStore(tmp_data_dir)
        assert store.progress["saved_ids"] == []
        assert store.progress["total_count"] == 0


class TestSaveDataPoint:
    def test_save(self, tmp_data_dir, valid_point):
        store = DataStore(tmp_data_dir)
        assert store.save_data_point(valid_point) is True
        path = Path(tmp_data_dir) / "jsonl" / "points_housing.jsonl"
        assert path.exists()
        assert store.is_saved("bayut-001")

    def test_category_slug(self, tmp_data_dir):
        store = DataStore(tmp_data_dir)
        store.save_data_point(make_point(category="Personal Care", id="pc-1"))
        assert (Path(tmp_data_dir) / "jsonl" / "points_personal_care.jsonl").exists()

    def test_assigns_missing_id(self, tmp_data_dir):
        store = DataStore(tmp_data_dir)
        dp = make_point(id="")
        store.save_data_point(dp)

        assert dp.id == ""
        saved = store.load_data_points()
        assert len(saved) == 1
        assert len(saved[0].id) == 32
        assert store.get_all_ids() == [saved[0].id]

    def test_progress_persisted(self, tmp_data_dir, valid_point):
        store = DataStore(tmp_data_dir)
        store.save_data_point(valid_point)

        with open(Path(tmp_data_dir) / "progress.json") as f:
            progress = json.load(f)
        assert progress["saved_ids"] == ["bayut-001"]
        assert progress["total_count"] == 1
        assert "updated" in progress

        reopened = DataStore(tmp_data_dir)
        assert reopened.is_saved("bayut-001")

    def test_same_id_counted_once(self, tmp_data_dir, valid_point):
        store = DataStore(tmp_data_dir)
        store.save_data_point(valid_point)
        store.save_data_point(valid_point)
        assert store.get_stats()["saved_points"] == 1

    def test_write_failure(self, tmp_data_dir, valid_point):
        store = DataStore(tmp_data_dir)
        with patch("builtins.open", side_effect=OSError("disk full")):
            assert store.save_data_point(valid_point) is False
        assert not store.is_saved("bayut-001")


class TestLoadDataPoints:
    def test_load_by_category(self, tmp_data_dir, valid_point):
        store = DataStore(tmp_data_dir)
        food = make_point(id="food-1", category="Food", unit="AED/kg")
        store.save_data_point(valid_point)
        store.save_data_point(food)

        assert store.load_data_points("Food") == [food]
        assert store.load_data_points("Education") == []
        assert len(store.load_data_points()) == 2

    def test_get_stats(self, tmp_data_dir, sample_batch):
        store = DataStore(tmp_data_dir)
        for dp in sample_batch:
            store.save_data_point(dp)
        stats = store.get_stats()
        assert stats["jsonl_files"] == 1
        assert stats["saved_points"] == 3
        assert stats["data_dir"] == tmp_data_dir
