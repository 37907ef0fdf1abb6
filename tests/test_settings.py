"""Tests for persisted grid settings."""

import json
from datetime import datetime, timezone
from unittest.mock import Mock

from grid.columns import default_columns
from grid.settings import (
    COLUMN_CONFIG_KEY,
    FILTER_STATE_KEY,
    GridSettings,
    JsonFileStorage,
    MemoryStorage,
)
from models.data_models import DateRange, SearchFilterState


class TestFilterState:
    def test_missing_entry_gives_default_state(self):
        assert GridSettings(MemoryStorage()).load_filter_state() == SearchFilterState()

    def test_invalid_json_gives_default_state(self):
        settings = GridSettings(MemoryStorage({FILTER_STATE_KEY: "{broken"}))
        assert settings.load_filter_state() == SearchFilterState()

    def test_invalid_values_give_default_state(self):
        payload = json.dumps({"statusFilter": ["not-a-status"]})
        settings = GridSettings(MemoryStorage({FILTER_STATE_KEY: payload}))
        assert settings.load_filter_state() == SearchFilterState()

    def test_round_trip_restores_dates(self):
        settings = GridSettings(MemoryStorage())
        state = SearchFilterState(
            search_term="checkout",
            severity_filter=["critical"],
            date_range=DateRange(start=datetime(2024, 5, 1, tzinfo=timezone.utc)),
        )
        assert settings.save_filter_state(state)

        loaded = settings.load_filter_state()
        assert loaded == state
        assert isinstance(loaded.date_range.start, datetime)

    def test_saved_with_camel_case_keys(self):
        storage = MemoryStorage()
        GridSettings(storage).save_filter_state(SearchFilterState(search_term="x"))
        assert json.loads(storage.get(FILTER_STATE_KEY))["searchTerm"] == "x"

    def test_storage_failures_are_swallowed(self):
        storage = Mock()
        storage.get.side_effect = OSError("disk gone")
        storage.set.side_effect = OSError("disk gone")
        settings = GridSettings(storage)

        assert settings.load_filter_state() == SearchFilterState()
        assert settings.save_filter_state(SearchFilterState()) is False


class TestColumns:
    def test_missing_columns(self):
        assert GridSettings(MemoryStorage()).load_columns() is None

    def test_empty_list_treated_as_missing(self):
        settings = GridSettings(MemoryStorage({COLUMN_CONFIG_KEY: "[]"}))
        assert settings.load_columns() is None

    def test_round_trip(self):
        settings = GridSettings(MemoryStorage())
        columns = default_columns()
        settings.save_columns(columns)
        assert settings.load_columns() == columns

    def test_clear_removes_both_keys(self):
        storage = MemoryStorage()
        settings = GridSettings(storage)
        settings.save_filter_state(SearchFilterState())
        settings.save_columns(default_columns())

        settings.clear()
        assert storage.get(FILTER_STATE_KEY) is None
        assert storage.get(COLUMN_CONFIG_KEY) is None


class TestJsonFileStorage:
    def test_missing_file_reads_as_empty(self, tmp_path):
        assert JsonFileStorage(tmp_path / "settings.json").get("anything") is None

    def test_values_persist_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        GridSettings(JsonFileStorage(path)).save_filter_state(SearchFilterState(search_term="crash"))

        reloaded = GridSettings(JsonFileStorage(path)).load_filter_state()
        assert reloaded.search_term == "crash"
        assert not list(path.parent.glob(".settings-*"))

    def test_remove(self, tmp_path):
        storage = JsonFileStorage(tmp_path / "settings.json")
        storage.set("a", "1")
        storage.set("b", "2")
        storage.remove("a")
        assert storage.get("a") is None
        assert storage.get("b") == "2"

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        assert GridSettings(JsonFileStorage(path)).load_filter_state() == SearchFilterState()
