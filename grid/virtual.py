"""
Render-window calculation for the virtualized bug table.

Only rows inside the viewport (plus an overscan margin on both sides) are
rendered. With a uniform row height the window is computed with a few
divisions, independent of the total number of rows.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_ROW_HEIGHT = 52
DEFAULT_OVERSCAN = 10


@dataclass(frozen=True)
class VirtualRow:
    index: int
    offset: int
    size: int


@dataclass(frozen=True)
class VirtualWindow:
    """Inclusive index range to render and where each row sits."""

    start_index: int
    end_index: int
    total_height: int
    rows: list[VirtualRow] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.end_index < self.start_index

    def __len__(self) -> int:
        return 0 if self.is_empty else self.end_index - self.start_index + 1

    def slice(self, items: Sequence[T]) -> list[T]:
        if self.is_empty:
            return []
        return list(items[self.start_index:self.end_index + 1])


def compute_window(
    row_count: int,
    viewport_height: int,
    scroll_offset: int = 0,
    row_height: int = DEFAULT_ROW_HEIGHT,
    overscan: int = DEFAULT_OVERSCAN,
) -> VirtualWindow:
    """
    Compute which rows to render for the current scroll position.

    Args:
        row_count: Total number of rows in the filtered, sorted list
        viewport_height: Height of the scroll container in pixels
        scroll_offset: Current scrollTop in pixels (clamped into range)
        row_height: Uniform row height in pixels
        overscan: Extra rows rendered above and below the visible range

    Returns:
        VirtualWindow with the padded index range clamped to [0, row_count - 1]
        and each row's absolute offset (`index * row_height`)

    Raises:
        ValueError: If the geometry is invalid
    """
    if row_height <= 0:
        raise ValueError(f"row_height must be positive, got {row_height}")
    if overscan < 0:
        raise ValueError(f"overscan must be >= 0, got {overscan}")
    if viewport_height < 0:
        raise ValueError(f"viewport_height must be >= 0, got {viewport_height}")

    total_height = max(row_count, 0) * row_height
    if row_count <= 0:
        return VirtualWindow(start_index=0, end_index=-1, total_height=0)

    max_scroll = max(total_height - viewport_height, 0)
    scroll = min(max(scroll_offset, 0), max_scroll)

    first_visible = int(scroll // row_height)
    if viewport_height > 0:
        last_visible = math.ceil((scroll + viewport_height) / row_height) - 1
    else:
        last_visible = first_visible

    start = max(first_visible - overscan, 0)
    end = min(last_visible + overscan, row_count - 1)

    rows = [
        VirtualRow(index=index, offset=index * row_height, size=row_height)
        for index in range(start, end + 1)
    ]
    return VirtualWindow(start_index=start, end_index=end, total_height=total_height, rows=rows)
