"""Tests for the filter / sort / paginate pipeline."""

from datetime import datetime, timezone

import pytest

from conftest import make_bug
from grid import pipeline
from models.data_models import DateRange, SearchFilterState


def ids(records):
    return [record.id for record in records]


class TestSearch:
    def test_empty_term_matches_everything(self, sample_bugs):
        assert all(pipeline.matches_search(bug, "  ") for bug in sample_bugs)

    def test_case_insensitive_title_match(self, sample_bugs):
        state = SearchFilterState(search_term="LOGIN")
        assert ids(pipeline.apply(sample_bugs, state)) == ["1"]

    def test_matches_description(self, sample_bugs):
        state = SearchFilterState(search_term="paying")
        assert ids(pipeline.apply(sample_bugs, state)) == ["3"]

    def test_matches_reporter_name(self, sample_bugs):
        state = SearchFilterState(search_term="carol")
        assert ids(pipeline.apply(sample_bugs, state)) == ["3"]

    def test_matches_id(self):
        bugs = [make_bug("a1b2"), make_bug("c3d4")]
        assert ids(pipeline.apply(bugs, SearchFilterState(search_term="c3"))) == ["c3d4"]

    def test_no_match(self, sample_bugs):
        assert pipeline.apply(sample_bugs, SearchFilterState(search_term="zzz")) == []


class TestFilters:
    def test_severity_filter_keeps_relative_order(self):
        bugs = [
            make_bug(str(i), severity=severity)
            for i, severity in enumerate(["low", "high", "critical", "high", "low"])
        ]
        result = pipeline.apply(bugs, SearchFilterState(severity_filter=["high"]))
        assert ids(result) == ["1", "3"]

    def test_dimensions_combine_with_and(self, sample_bugs):
        state = SearchFilterState(severity_filter=["high"], status_filter=["open"])
        assert ids(pipeline.apply(sample_bugs, state)) == ["3"]

    def test_multi_value_selection_is_or(self, sample_bugs):
        state = SearchFilterState(status_filter=["resolved", "closed"], sort_by="id", sort_order="asc")
        assert ids(pipeline.apply(sample_bugs, state)) == ["2", "5"]

    def test_reporter_filter(self, sample_bugs):
        state = SearchFilterState(reporter_filter=["Alice"], sort_by="id", sort_order="asc")
        assert ids(pipeline.apply(sample_bugs, state)) == ["1", "4"]

    def test_missing_status_counts_as_open(self):
        bug = make_bug("1", status=None)
        assert pipeline.matches_filters(bug, SearchFilterState(status_filter=["open"]))

    def test_missing_severity_counts_as_low(self):
        bug = make_bug("1", severity=None)
        assert pipeline.matches_filters(bug, SearchFilterState(severity_filter=["low"]))
        assert not pipeline.matches_filters(bug, SearchFilterState(severity_filter=["high"]))


class TestDateRange:
    def test_bounds_are_inclusive(self, sample_bugs):
        state = SearchFilterState(
            date_range=DateRange(
                start=datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc),
                end=datetime(2024, 3, 3, 9, 0, tzinfo=timezone.utc),
            ),
            sort_order="asc",
        )
        assert ids(pipeline.apply(sample_bugs, state)) == ["2", "3"]

    def test_open_start(self, sample_bugs):
        state = SearchFilterState(
            date_range=DateRange(end=datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc)),
        )
        assert ids(pipeline.apply(sample_bugs, state)) == ["1"]

    def test_missing_created_at_excluded_when_filtering_by_date(self, sample_bugs):
        state = SearchFilterState(date_range=DateRange(start=datetime(2000, 1, 1, tzinfo=timezone.utc)))
        assert "5" not in ids(pipeline.apply(sample_bugs, state))

    def test_inverted_range_matches_nothing(self, sample_bugs, caplog):
        state = SearchFilterState(
            date_range=DateRange(
                start=datetime(2024, 3, 4, tzinfo=timezone.utc),
                end=datetime(2024, 3, 1, tzinfo=timezone.utc),
            )
        )
        assert pipeline.apply(sample_bugs, state) == []
        assert "is after end" in caplog.text


class TestSort:
    def test_default_state_sorts_newest_first_with_missing_last(self, sample_bugs):
        assert ids(pipeline.apply(sample_bugs)) == ["4", "3", "2", "1", "5"]

    def test_missing_values_last_in_both_directions(self):
        bugs = [make_bug("1", reporter_name=None), make_bug("2", reporter_name="Bob"), make_bug("3", reporter_name="Amy")]
        assert ids(pipeline.sort_records(bugs, "reporter_name", "asc")) == ["3", "2", "1"]
        assert ids(pipeline.sort_records(bugs, "reporter_name", "desc")) == ["2", "3", "1"]

    def test_sort_is_stable_in_both_directions(self):
        bugs = [make_bug(str(i), severity=severity) for i, severity in enumerate(["high", "low", "high", "low"])]
        assert ids(pipeline.sort_records(bugs, "severity", "asc")) == ["1", "3", "0", "2"]
        assert ids(pipeline.sort_records(bugs, "severity", "desc")) == ["0", "2", "1", "3"]

    def test_severity_sorts_by_rank_not_alphabetically(self):
        bugs = [make_bug(str(i), severity=severity) for i, severity in enumerate(["medium", "critical", "low", "high"])]
        result = pipeline.sort_records(bugs, "severity", "asc")
        assert [bug.severity for bug in result] == ["low", "medium", "high", "critical"]

    def test_numeric_field(self):
        bugs = [make_bug(str(i), attachment_count=count) for i, count in enumerate([3, 10, 0])]
        assert ids(pipeline.sort_records(bugs, "attachment_count", "desc")) == ["1", "0", "2"]

    def test_mixed_types_have_total_order(self):
        assert pipeline.sort_key("id", 5) < pipeline.sort_key("id", "abc")
        assert pipeline.sort_key("id", True) < pipeline.sort_key("id", 0)
        assert pipeline.sort_key("created_at", datetime(2024, 1, 1, tzinfo=timezone.utc)) < pipeline.sort_key("title", "a")


class TestApply:
    def test_empty_list(self):
        assert pipeline.apply([], SearchFilterState(search_term="x", severity_filter=["high"])) == []

    def test_input_not_mutated(self, sample_bugs):
        original = list(sample_bugs)
        result = pipeline.apply(sample_bugs, SearchFilterState(sort_by="title", sort_order="asc"))
        assert sample_bugs == original
        assert result is not sample_bugs

    def test_result_is_subset(self, sample_bugs):
        result = pipeline.apply(sample_bugs, SearchFilterState(severity_filter=["high", "low"]))
        assert all(bug in sample_bugs for bug in result)

    def test_identity_when_default_state_and_already_sorted(self, sample_bugs):
        presorted = pipeline.apply(sample_bugs)
        assert pipeline.apply(presorted, SearchFilterState()) == presorted


class TestPaginate:
    def test_slices_page(self):
        bugs = [make_bug(str(i)) for i in range(7)]
        page = pipeline.paginate(bugs, page=1, page_size=3)
        assert ids(page.records) == ["3", "4", "5"]
        assert page.total_count == 7
        assert page.total_pages == 3

    def test_page_past_end_is_empty(self):
        bugs = [make_bug(str(i)) for i in range(3)]
        page = pipeline.paginate(bugs, page=5, page_size=3)
        assert page.records == []
        assert page.total_count == 3

    def test_reporters_facet(self, sample_bugs):
        page = pipeline.paginate(sample_bugs, page=0, page_size=2)
        assert page.unique_reporters == ["Alice", "Bob", "Carol"]

    @pytest.mark.parametrize("page, page_size", [(-1, 10), (0, 0)])
    def test_rejects_invalid_arguments(self, page, page_size):
        with pytest.raises(ValueError):
            pipeline.paginate([], page=page, page_size=page_size)
