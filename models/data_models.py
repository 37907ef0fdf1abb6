"""Data models for bug records, grid filter state and column configuration."""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


Severity = Literal["low", "medium", "high", "critical"]
Priority = Literal["low", "medium", "high", "urgent"]
Status = Literal["open", "in_progress", "resolved", "closed", "duplicate"]
SortOrder = Literal["asc", "desc"]

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
STATUSES: tuple[str, ...] = ("open", "in_progress", "resolved", "closed", "duplicate")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so every instant compares with every other."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _dedupe(values: list[Any]) -> list[Any]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class BugRecord(BaseModel):
    """A tracked defect as stored in the `winners_bug_reports` table.

    Records are read-only inputs to the grid: the pipeline only chooses
    which records to show and in which order.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: Optional[str] = None
    severity: Optional[Severity] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    assigned_to: Optional[str] = None
    environment: Optional[str] = None
    browser: Optional[str] = None
    device: Optional[str] = None
    os: Optional[str] = None
    url: Optional[str] = None
    steps_to_reproduce: list[str] = Field(default_factory=list)
    expected_result: Optional[str] = None
    actual_result: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    test_project_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Attachment references resolved by the list endpoint
    attachment_count: int = 0
    attachment_urls: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("title", mode="before")
    @classmethod
    def coerce_title(cls, v: Any) -> str:
        return v or ""

    @field_validator("steps_to_reproduce", "tags", "attachment_urls", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> list:
        # Older rows store a single string (or NULL) instead of an array
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v else []
        return v

    @field_validator("created_at", "updated_at", "resolved_at")
    @classmethod
    def normalize_datetime(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class DateRange(BaseModel):
    """Inclusive created_at bounds; either side may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_datetime(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None

    @property
    def is_inverted(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end


class SearchFilterState(BaseModel):
    """Complete set of search, filter and sort parameters of the bug grid.

    Serialized with camelCase keys (`searchTerm`, `dateRange`, ...) which is
    the format persisted under the `bugGrid_filterState` settings key.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    search_term: str = ""
    status_filter: list[Status] = Field(default_factory=list)
    severity_filter: list[Severity] = Field(default_factory=list)
    priority_filter: list[Priority] = Field(default_factory=list)
    reporter_filter: list[str] = Field(default_factory=list)
    date_range: DateRange = Field(default_factory=DateRange)
    sort_by: str = "created_at"
    sort_order: SortOrder = "desc"

    @field_validator("status_filter", "severity_filter", "priority_filter", "reporter_filter")
    @classmethod
    def dedupe_selection(cls, v: list[Any]) -> list[Any]:
        return _dedupe(v)

    @field_validator("search_term", mode="before")
    @classmethod
    def coerce_search_term(cls, v: Any) -> str:
        return v or ""

    @property
    def has_date_filter(self) -> bool:
        return self.date_range.is_active

    def is_default(self) -> bool:
        return self == SearchFilterState()

    def with_search_term(self, term: str) -> "SearchFilterState":
        return self.model_copy(update={"search_term": term})

    def to_storage(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and ISO-8601 dates."""
        return self.model_dump(mode="json", by_alias=True)


class ColumnKind(str, Enum):
    """How a column's cells are rendered."""

    TEXT = "text"
    BADGE = "badge"
    DATE = "date"
    NUMBER = "number"
    CONTROL = "control"  # row selection and action buttons, no record data


class ColumnConfig(BaseModel):
    """Per-column display metadata, independent of the records themselves."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    label: str
    visible: bool = True
    width: int = 150
    order: int = 0
    can_hide: bool = True
    kind: ColumnKind = ColumnKind.TEXT


class BugPage(BaseModel):
    """One page of bug records plus the facets used to populate filter options."""

    records: list[BugRecord] = Field(default_factory=list)
    total_count: int = 0
    page: int = 0
    page_size: int = 50
    unique_reporters: list[str] = Field(default_factory=list)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)


class BugDraft(BaseModel):
    """Structured bug data extracted from a chat message, ready to insert."""

    title: str = "Untitled Bug"
    description: str = ""
    severity: Severity = "medium"
    priority: Priority = "medium"
    environment: str = "local"
    browser: str = "chrome"
    device: str = "desktop"
    os: str = "unknown"
    url: str = ""
    steps_to_reproduce: str = ""
    expected_result: str = ""
    actual_result: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> str:
        return v if v in SEVERITIES else "medium"

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> str:
        return v if v in PRIORITIES else "medium"

    @field_validator(
        "title", "description", "environment", "browser", "device", "os", "url",
        "steps_to_reproduce", "expected_result", "actual_result",
        mode="before",
    )
    @classmethod
    def empty_to_default(cls, v: Any, info) -> Any:
        if v is None or v == "":
            return cls.model_fields[info.field_name].default
        if isinstance(v, list):
            return "\n".join(str(item) for item in v)
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list:
        if not v:
            return []
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v
