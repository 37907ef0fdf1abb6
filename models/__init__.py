"""Data models for the bug grid."""

from models.config_models import Config, CredentialsConfig, GridConfig
from models.data_models import (
    BugDraft,
    BugPage,
    BugRecord,
    ColumnConfig,
    ColumnKind,
    DateRange,
    SearchFilterState,
)

__all__ = [
    "Config",
    "CredentialsConfig",
    "GridConfig",
    "BugDraft",
    "BugPage",
    "BugRecord",
    "ColumnConfig",
    "ColumnKind",
    "DateRange",
    "SearchFilterState",
]
