"""
Filter / sort / paginate pipeline for bug records.

All functions here are pure: they never mutate the records or the filter
state they are given, and they never talk to storage or the network. The
same pipeline backs the client-side grid mode and the local data source
used in tests.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from models.data_models import (
    PRIORITIES,
    SEVERITIES,
    STATUSES,
    BugPage,
    BugRecord,
    SearchFilterState,
)

logger = logging.getLogger(__name__)

# Fields a free-text search looks at
SEARCH_FIELDS = ("title", "description", "reporter_name", "id")

# Categorical fields sort by declared rank rather than alphabetically
_RANKED_FIELDS: dict[str, dict[str, int]] = {
    "severity": {value: rank for rank, value in enumerate(SEVERITIES)},
    "priority": {value: rank for rank, value in enumerate(PRIORITIES)},
    "status": {value: rank for rank, value in enumerate(STATUSES)},
}

# Type ranks keep mixed-type fields totally ordered: bool < number < date < text
_TYPE_RANK_BOOL = 0
_TYPE_RANK_NUMBER = 1
_TYPE_RANK_DATE = 2
_TYPE_RANK_TEXT = 3


def matches_search(record: BugRecord, search_term: str) -> bool:
    """True if any searchable field contains the term, case-insensitively."""
    term = (search_term or "").strip().lower()
    if not term:
        return True

    for field in SEARCH_FIELDS:
        value = getattr(record, field, None)
        if value and term in str(value).lower():
            return True
    return False


def _matches_date_range(record: BugRecord, state: SearchFilterState) -> bool:
    date_range = state.date_range
    if not date_range.is_active:
        return True
    if record.created_at is None:
        return False
    if date_range.start is not None and record.created_at < date_range.start:
        return False
    if date_range.end is not None and record.created_at > date_range.end:
        return False
    return True


def matches_filters(record: BugRecord, state: SearchFilterState) -> bool:
    """
    Check a record against every active filter dimension.

    Empty selections apply no filter. Records without a status, severity or
    priority are treated as open / low / low, matching how the grid labels
    them.
    """
    if not matches_search(record, state.search_term):
        return False
    if state.status_filter and (record.status or "open") not in state.status_filter:
        return False
    if state.severity_filter and (record.severity or "low") not in state.severity_filter:
        return False
    if state.priority_filter and (record.priority or "low") not in state.priority_filter:
        return False
    if state.reporter_filter and (record.reporter_name or "") not in state.reporter_filter:
        return False
    return _matches_date_range(record, state)


def sort_key(field: str, value: Any) -> tuple:
    """
    Total-order key for a non-null field value.

    Severity, priority and status sort by rank (low before critical, open
    before closed); unknown values of those fields sort after known ones.
    Other fields compare within their type, and different types never meet.
    """
    ranks = _RANKED_FIELDS.get(field)
    if ranks is not None:
        return (_TYPE_RANK_NUMBER, ranks.get(value, len(ranks)), str(value))
    if isinstance(value, bool):
        return (_TYPE_RANK_BOOL, int(value))
    if isinstance(value, (int, float)):
        return (_TYPE_RANK_NUMBER, value)
    if isinstance(value, datetime):
        return (_TYPE_RANK_DATE, value.timestamp())
    if isinstance(value, (list, tuple)):
        return (_TYPE_RANK_NUMBER, len(value))
    return (_TYPE_RANK_TEXT, str(value))


def sort_records(
    records: Sequence[BugRecord],
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> list[BugRecord]:
    """
    Stable sort on one field; records missing the value go last either way.

    Python's sort is stable and `reverse=True` keeps equal elements in
    their original order, so ties always preserve input order.
    """
    present: list[BugRecord] = []
    missing: list[BugRecord] = []
    for record in records:
        if getattr(record, sort_by, None) is None:
            missing.append(record)
        else:
            present.append(record)

    present.sort(
        key=lambda record: sort_key(sort_by, getattr(record, sort_by)),
        reverse=(sort_order == "desc"),
    )
    return present + missing


def apply(records: Iterable[BugRecord], state: Optional[SearchFilterState] = None) -> list[BugRecord]:
    """
    Filter and sort records for display.

    Returns a new list containing a subset of `records`; the input is left
    untouched. An inverted date range (start after end) matches nothing.
    """
    state = state or SearchFilterState()
    if state.date_range.is_inverted:
        logger.warning(
            f"Date range start {state.date_range.start.isoformat()} is after "
            f"end {state.date_range.end.isoformat()}; no records can match"
        )

    filtered = [record for record in records if matches_filters(record, state)]
    return sort_records(filtered, state.sort_by, state.sort_order)


def unique_reporters(records: Iterable[BugRecord]) -> list[str]:
    """Distinct, non-empty reporter names in alphabetical order."""
    return sorted({record.reporter_name for record in records if record.reporter_name})


def paginate(
    records: Sequence[BugRecord],
    page: int = 0,
    page_size: int = 50,
    reporters: Optional[list[str]] = None,
) -> BugPage:
    """
    Slice one page out of an already filtered and sorted list.

    Pages are 0-indexed. A page past the end yields no records but still
    reports the full total so the pager can recover.
    """
    if page < 0:
        raise ValueError(f"page must be >= 0, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")

    offset = page * page_size
    return BugPage(
        records=list(records[offset:offset + page_size]),
        total_count=len(records),
        page=page,
        page_size=page_size,
        unique_reporters=reporters if reporters is not None else unique_reporters(records),
    )
