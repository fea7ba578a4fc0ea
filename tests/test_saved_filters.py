"""Tests for saved filter records and their JSON store."""

import json
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from modules.livelog.saved_filters import SavedFilter, SavedFilterStore, upsert_filter


@pytest.fixture
def store_path():
    with tempfile.TemporaryDirectory() as td:
        yield Path(td) / "bark" / "filters.json"


class TestSavedFilter:
    def test_to_dict_serializes_correctly(self):
        saved = SavedFilter(name="errors", pattern="ERROR|FATAL", is_regex=True)
        assert saved.to_dict() == {"name": "errors", "pattern": "ERROR|FATAL", "is_regex": True}

    def test_from_dict_with_missing_fields(self):
        saved = SavedFilter.from_dict({"name": "only name"})
        assert saved.pattern == ""
        assert saved.is_regex is False

    def test_activate_compiles_fresh_filter(self):
        saved = SavedFilter(name="timeouts", pattern="time(out)?", is_regex=True)
        first = saved.activate()
        second = saved.activate()

        assert first is not second
        assert first.uses_regex
        assert first.matches("ERROR timeout")

    def test_activate_invalid_regex_falls_back(self):
        active = SavedFilter(name="paren", pattern="(", is_regex=True).activate()
        assert active.matches("foo(")

    def test_upsert_replaces_same_name_in_place(self):
        filters = [SavedFilter("a", "1"), SavedFilter("b", "2")]
        result = upsert_filter(filters, SavedFilter("a", "3"))
        assert [(f.name, f.pattern) for f in result] == [("a", "3"), ("b", "2")]

        result = upsert_filter(result, SavedFilter("c", "4"))
        assert [f.name for f in result] == ["a", "b", "c"]


class TestSavedFilterStore:
    def test_missing_file_loads_empty(self, store_path):
        assert SavedFilterStore(str(store_path)).load() == []

    def test_save_and_load(self, store_path):
        store = SavedFilterStore(str(store_path))
        filters = [SavedFilter("errors", "error"), SavedFilter("ids", r"id=\d+", True)]

        assert store.save(filters)
        assert SavedFilterStore(str(store_path)).load() == filters

        on_disk = json.loads(store_path.read_text(encoding="utf-8"))
        assert on_disk[1] == {"name": "ids", "pattern": r"id=\d+", "is_regex": True}

    def test_corrupt_file_loads_empty(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text("[{ broken", encoding="utf-8")
        assert SavedFilterStore(str(store_path)).load() == []

    def test_unexpected_shapes_are_skipped(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(
            json.dumps([{"name": "ok", "pattern": "x"}, "junk", {"pattern": "nameless"}]),
            encoding="utf-8",
        )
        assert SavedFilterStore(str(store_path)).load() == [SavedFilter("ok", "x")]

        store_path.write_text(json.dumps({"name": "not a list"}), encoding="utf-8")
        assert SavedFilterStore(str(store_path)).load() == []
