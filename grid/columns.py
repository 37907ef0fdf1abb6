"""
Column configuration store for the bug grid.

Holds the ordered list of column descriptors, applies the column manager's
edits (drag-reorder, visibility toggle, width slider, quick actions) and
persists the full list after every successful change.
"""

import logging
import math
from datetime import datetime
from typing import Any, Callable, Optional

from grid.settings import GridSettings
from models.data_models import BugRecord, ColumnConfig, ColumnKind

logger = logging.getLogger(__name__)

MIN_COLUMN_WIDTH = 80
MAX_COLUMN_WIDTH = 500

DEFAULT_COLUMNS: tuple[ColumnConfig, ...] = (
    ColumnConfig(id="select", label="Select", width=50, order=0, can_hide=False, kind=ColumnKind.CONTROL),
    ColumnConfig(id="id", label="ID", width=100, order=1, kind=ColumnKind.TEXT),
    ColumnConfig(id="title", label="Title", width=300, order=2, can_hide=False, kind=ColumnKind.TEXT),
    ColumnConfig(id="status", label="Status", width=120, order=3, kind=ColumnKind.BADGE),
    ColumnConfig(id="severity", label="Severity", width=120, order=4, kind=ColumnKind.BADGE),
    ColumnConfig(id="priority", label="Priority", width=120, order=5, kind=ColumnKind.BADGE),
    ColumnConfig(id="reporter_name", label="Reporter", width=150, order=6, kind=ColumnKind.TEXT),
    ColumnConfig(id="environment", label="Environment", width=120, order=7, kind=ColumnKind.TEXT),
    ColumnConfig(id="created_at", label="Created", width=140, order=8, kind=ColumnKind.DATE),
    ColumnConfig(id="updated_at", label="Updated", width=120, order=9, kind=ColumnKind.DATE),
    ColumnConfig(id="attachment_count", label="Files", width=80, order=10, kind=ColumnKind.NUMBER),
    ColumnConfig(id="actions", label="Actions", width=100, order=11, can_hide=False, kind=ColumnKind.CONTROL),
)


DEFAULTS_BY_ID: dict[str, ColumnConfig] = {column.id: column for column in DEFAULT_COLUMNS}


def default_columns() -> list[ColumnConfig]:
    return [column.model_copy() for column in DEFAULT_COLUMNS]


def clamp_width(width: float) -> int:
    return max(MIN_COLUMN_WIDTH, min(MAX_COLUMN_WIDTH, int(width)))


def _format_text(value: Any) -> str:
    return "" if value is None else str(value)


def _format_badge(value: Any) -> str:
    if not value:
        return ""
    return str(value).replace("_", " ").title()


def _format_date(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, datetime):
        return value.strftime("%b %d, %Y %H:%M")
    return str(value)


def _format_number(value: Any) -> str:
    return "0" if value is None else str(value)


def _format_control(value: Any) -> str:
    return ""


CELL_FORMATTERS: dict[ColumnKind, Callable[[Any], str]] = {
    ColumnKind.TEXT: _format_text,
    ColumnKind.BADGE: _format_badge,
    ColumnKind.DATE: _format_date,
    ColumnKind.NUMBER: _format_number,
    ColumnKind.CONTROL: _format_control,
}


def format_cell(column: ColumnConfig, record: BugRecord) -> str:
    """Render one cell according to the column's kind."""
    value = getattr(record, column.id, None)
    return CELL_FORMATTERS[column.kind](value)


class ColumnStore:
    """
    Ordered column descriptors with persisted state.

    Positions passed to `move_column` refer to the list sorted by `order`.
    Operations on unknown column ids or out-of-range positions are ignored
    (with a log line) so stale UI references never raise.
    """

    def __init__(self, settings: Optional[GridSettings] = None):
        self.settings = settings or GridSettings()
        saved = self.settings.load_columns()
        if saved is None:
            self._columns = default_columns()
        else:
            self._columns = self._normalize(self._merge_saved(saved))
            logger.debug(f"Loaded {len(self._columns)} columns from saved config")

    @staticmethod
    def _merge_saved(saved: list[ColumnConfig]) -> list[ColumnConfig]:
        """
        Overlay saved column state onto the default column set.

        Only `visible`, `width` and `order` are taken from storage. Labels,
        kinds and `can_hide` always come from DEFAULT_COLUMNS, unknown ids
        are dropped, and default columns missing from storage are appended
        after the saved ones.
        """
        saved_by_id: dict[str, ColumnConfig] = {}
        for column in saved:
            if column.id not in DEFAULTS_BY_ID:
                logger.debug(f"Dropping unknown saved column '{column.id}'")
                continue
            saved_by_id.setdefault(column.id, column)

        next_order = max((column.order for column in saved_by_id.values()), default=-1) + 1
        merged = []
        for default in DEFAULT_COLUMNS:
            stored = saved_by_id.get(default.id)
            if stored is None:
                merged.append(default.model_copy(update={"order": next_order}))
                next_order += 1
                continue
            merged.append(default.model_copy(update={
                "visible": stored.visible or not default.can_hide,
                "width": clamp_width(stored.width),
                "order": stored.order,
            }))
        return merged

    @staticmethod
    def _normalize(columns: list[ColumnConfig]) -> list[ColumnConfig]:
        # Saved orders may have gaps or duplicates; rank them into 0..N-1
        ordered = sorted(enumerate(columns), key=lambda item: (item[1].order, item[0]))
        return [
            column.model_copy(update={"order": index})
            for index, (_, column) in enumerate(ordered)
        ]

    def _save(self) -> None:
        self.settings.save_columns(self._columns)

    def _find(self, column_id: str) -> Optional[int]:
        for index, column in enumerate(self._columns):
            if column.id == column_id:
                return index
        return None

    @property
    def columns(self) -> list[ColumnConfig]:
        """Copies of every column, sorted by order."""
        return [column.model_copy() for column in sorted(self._columns, key=lambda c: c.order)]

    def visible_columns(self) -> list[ColumnConfig]:
        return [column for column in self.columns if column.visible]

    @property
    def visible_count(self) -> int:
        return sum(1 for column in self._columns if column.visible)

    def get(self, column_id: str) -> Optional[ColumnConfig]:
        index = self._find(column_id)
        return self._columns[index].model_copy() if index is not None else None

    def move_column(self, from_index: int, to_index: int) -> bool:
        """Move the column at one position to another and renumber every order."""
        count = len(self._columns)
        if not (0 <= from_index < count and 0 <= to_index < count):
            logger.warning(f"Ignoring column move {from_index} → {to_index} (have {count} columns)")
            return False
        if from_index == to_index:
            return False

        ordered = sorted(self._columns, key=lambda c: c.order)
        moved = ordered.pop(from_index)
        ordered.insert(to_index, moved)
        self._columns = [
            column.model_copy(update={"order": index}) for index, column in enumerate(ordered)
        ]
        logger.debug(f"Moved column '{moved.id}' from {from_index} to {to_index}")
        self._save()
        return True

    def set_visibility(self, column_id: str, visible: bool) -> bool:
        index = self._find(column_id)
        if index is None:
            logger.debug(f"Ignoring visibility change for unknown column '{column_id}'")
            return False

        column = self._columns[index]
        if not visible and not column.can_hide:
            logger.warning(f"Column '{column_id}' cannot be hidden")
            return False
        if column.visible == visible:
            return False

        self._columns[index] = column.model_copy(update={"visible": visible})
        self._save()
        return True

    def set_width(self, column_id: str, width: float) -> bool:
        index = self._find(column_id)
        if index is None:
            logger.debug(f"Ignoring width change for unknown column '{column_id}'")
            return False
        if not math.isfinite(width):
            logger.warning(f"Ignoring non-finite width {width} for column '{column_id}'")
            return False

        self._columns[index] = self._columns[index].model_copy(update={"width": clamp_width(width)})
        self._save()
        return True

    def reset_to_defaults(self) -> None:
        self._columns = default_columns()
        self._save()

    def show_all(self) -> None:
        self._columns = [column.model_copy(update={"visible": True}) for column in self._columns]
        self._save()

    def hide_all(self) -> None:
        # Columns that cannot be hidden stay visible
        self._columns = [
            column.model_copy(update={"visible": not column.can_hide})
            for column in self._columns
        ]
        self._save()
