"""
Data-fetch orchestration for the bug grid.

The grid runs in one of two deployment modes:

- server: every page is requested from the bug list API, which applies
  search, filters, sorting and paging in the database (RemoteBugSource)
- client: the full list is held in memory and the local pipeline does the
  same work before slicing out a page (LocalBugSource)

BugGridOrchestrator sits on top of either source. It debounces rapid
search-term edits, tags every request with a generation number so a slow
response can never overwrite a newer one, and keeps the last good page on
screen when a request fails.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Protocol

import requests

from grid import pipeline
from grid.virtual import DEFAULT_OVERSCAN, DEFAULT_ROW_HEIGHT, VirtualWindow, compute_window
from grid.settings import GridSettings, JsonFileStorage, MemoryStorage
from models.config_models import GridConfig
from models.data_models import STATUSES, BugPage, BugRecord, SearchFilterState

logger = logging.getLogger(__name__)

BUGS_ENDPOINT = "/api/bugs"


def build_query_params(page: int, page_size: int, filters: SearchFilterState) -> dict[str, str]:
    """
    Translate a filter state into list-endpoint query parameters.

    Multi-select filters are comma-joined; date bounds are sent as UTC
    calendar dates (YYYY-MM-DD). Inactive filters are omitted entirely.
    """
    params = {
        "page": str(page),
        "pageSize": str(page_size),
        "sortBy": filters.sort_by,
        "sortOrder": filters.sort_order,
    }

    if filters.search_term:
        params["search"] = filters.search_term
    if filters.status_filter:
        params["status"] = ",".join(filters.status_filter)
    if filters.severity_filter:
        params["severity"] = ",".join(filters.severity_filter)
    if filters.priority_filter:
        params["priority"] = ",".join(filters.priority_filter)
    if filters.reporter_filter:
        params["reporters"] = ",".join(filters.reporter_filter)
    if filters.date_range.start is not None:
        params["startDate"] = filters.date_range.start.date().isoformat()
    if filters.date_range.end is not None:
        params["endDate"] = filters.date_range.end.date().isoformat()

    return params


def parse_bug_page(payload: dict[str, Any]) -> BugPage:
    """Parse a `{bugs, pagination, filters}` list response into a BugPage."""
    try:
        pagination = payload["pagination"]
        return BugPage(
            records=[BugRecord.model_validate(bug) for bug in payload.get("bugs") or []],
            total_count=pagination.get("total", 0),
            page=pagination.get("page", 0),
            page_size=pagination.get("pageSize", 50),
            unique_reporters=(payload.get("filters") or {}).get("uniqueReporters", []),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed bug list response: {e}") from e


class BugSource(Protocol):
    def fetch(self, page: int, page_size: int, filters: SearchFilterState) -> BugPage: ...

    def update_status(self, bug_ids: list[str], status: str) -> int: ...

    def delete_bugs(self, bug_ids: list[str]) -> int: ...


class RemoteBugSource:
    """Server-side mode: one GET against the bug list API per fetch."""

    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, page: int, page_size: int, filters: SearchFilterState) -> BugPage:
        params = build_query_params(page, page_size, filters)
        url = f"{self.base_url}{BUGS_ENDPOINT}"
        logger.debug(f"GET {url} params={params}")

        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return parse_bug_page(response.json())

    def update_status(self, bug_ids: list[str], status: str) -> int:
        """PATCH the bulk status endpoint. Returns the number of bugs updated."""
        url = f"{self.base_url}{BUGS_ENDPOINT}"
        response = self.session.patch(url, json={"ids": bug_ids, "status": status}, timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("updated", 0)

    def delete_bugs(self, bug_ids: list[str]) -> int:
        """DELETE through the bulk endpoint. Returns the number of bugs deleted."""
        url = f"{self.base_url}{BUGS_ENDPOINT}"
        response = self.session.delete(url, json={"ids": bug_ids}, timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("deleted", 0)


class LocalBugSource:
    """Client-side mode: filter, sort and slice an in-memory list."""

    def __init__(self, records: Iterable[BugRecord] = ()):
        self._records: list[BugRecord] = list(records)

    @property
    def records(self) -> list[BugRecord]:
        return list(self._records)

    def replace_records(self, records: Iterable[BugRecord]) -> None:
        self._records = list(records)

    def update_status(self, bug_ids: list[str], status: str) -> int:
        wanted = set(bug_ids)
        now = datetime.now(timezone.utc)
        updated = 0
        for index, record in enumerate(self._records):
            if record.id in wanted:
                self._records[index] = record.model_copy(update={"status": status, "updated_at": now})
                updated += 1
        return updated

    def delete_bugs(self, bug_ids: list[str]) -> int:
        wanted = set(bug_ids)
        kept = [record for record in self._records if record.id not in wanted]
        deleted = len(self._records) - len(kept)
        self._records = kept
        return deleted

    def fetch(self, page: int, page_size: int, filters: SearchFilterState) -> BugPage:
        view = pipeline.apply(self._records, filters)
        # Facets describe the whole data set, not just the filtered view
        return pipeline.paginate(view, page, page_size, reporters=pipeline.unique_reporters(self._records))


class Debouncer:
    """
    Delay a call until no new call has arrived for `wait_seconds`.

    Only the arguments of the most recent call are used. A wait of zero
    runs the call immediately on the caller's thread.
    """

    def __init__(self, wait_seconds: float, func: Callable[..., Any]):
        self.wait_seconds = wait_seconds
        self.func = func
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[tuple[tuple, dict]] = None
        self._token = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def call(self, *args, **kwargs) -> None:
        if self.wait_seconds <= 0:
            self.cancel()
            self.func(*args, **kwargs)
            return

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._token += 1
            self._pending = (args, kwargs)
            self._timer = threading.Timer(self.wait_seconds, self._fire, args=(self._token,))
            self._timer.daemon = True
            self._timer.start()

    def _take_pending(self, token: Optional[int] = None) -> Optional[tuple[tuple, dict]]:
        with self._lock:
            if token is not None and token != self._token:
                return None
            pending = self._pending
            self._pending = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self, token: int) -> None:
        pending = self._take_pending(token)
        if pending is not None:
            args, kwargs = pending
            self.func(*args, **kwargs)

    def flush(self) -> bool:
        """Run the pending call now. Returns False if nothing was pending."""
        pending = self._take_pending()
        if pending is None:
            return False
        args, kwargs = pending
        self.func(*args, **kwargs)
        return True

    def cancel(self) -> None:
        self._take_pending()


class BugGridOrchestrator:
    """
    Owns the grid's page data and keeps it in step with the filter state.

    Attributes mirror what the table renders: `records`, `total_count`,
    `page`, `page_size`, `unique_reporters`, plus `filters` and
    `last_error`. All of them keep their previous values when a fetch fails.

    Row selection covers the current page only. It is cleared when the
    filters, page or page size change, and bulk actions run against it.
    """

    def __init__(
        self,
        source: BugSource,
        settings: Optional[GridSettings] = None,
        page_size: int = 50,
        debounce_seconds: float = 0.3,
        on_error: Optional[Callable[[str], None]] = None,
        row_height: int = DEFAULT_ROW_HEIGHT,
        overscan: int = DEFAULT_OVERSCAN,
    ):
        self.source = source
        self.settings = settings or GridSettings()
        self.on_error = on_error
        self.row_height = row_height
        self.overscan = overscan

        self.filters: SearchFilterState = self.settings.load_filter_state()
        self.records: list[BugRecord] = []
        self.total_count = 0
        self.page = 0
        self.page_size = page_size
        self.unique_reporters: list[str] = []
        self.last_error: Optional[str] = None

        self._lock = threading.Lock()
        self._generation = 0
        self._in_flight = 0
        self._selected: set[str] = set()
        self._search_debouncer = Debouncer(debounce_seconds, self._apply_search_term)

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    @property
    def total_pages(self) -> int:
        return BugPage(total_count=self.total_count, page_size=self.page_size).total_pages

    def _notify(self, message: str) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(message)
        except Exception as e:
            logger.error(f"Error notifier failed: {e}")

    def fetch(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        filters: Optional[SearchFilterState] = None,
    ) -> Optional[BugPage]:
        """
        Fetch one page and, if it is still the newest request, show it.

        Omitted arguments are read from the current state at the moment the
        request is tagged, so the newest request always carries the newest
        filters.

        Returns:
            The applied BugPage, or None when the request failed or was
            superseded by a newer one. Never raises.
        """
        with self._lock:
            page = self.page if page is None else page
            page_size = self.page_size if page_size is None else page_size
            filters = self.filters if filters is None else filters
            self._generation += 1
            generation = self._generation
            self._in_flight += 1

        try:
            result = self.source.fetch(page, page_size, filters)
        except Exception as e:
            with self._lock:
                self._in_flight -= 1
                stale = generation != self._generation
            if stale:
                logger.debug(f"Ignoring failure of superseded request #{generation}: {e}")
                return None
            logger.error(f"Failed to fetch bug reports (page {page}): {e}")
            self.last_error = str(e)
            self._notify("Failed to load bug reports")
            return None

        with self._lock:
            self._in_flight -= 1
            if generation != self._generation:
                logger.debug(f"Discarding stale response #{generation} (latest is #{self._generation})")
                return None

            if (result.page, result.page_size) != (self.page, self.page_size):
                self._selected.clear()
            else:
                self._selected &= {record.id for record in result.records}

            self.records = list(result.records)
            self.total_count = result.total_count
            self.page = result.page
            self.page_size = result.page_size
            self.unique_reporters = list(result.unique_reporters)
            self.last_error = None

        logger.info(
            f"Loaded {len(result.records)} bugs (page {result.page}, "
            f"page_size {result.page_size}, total {result.total_count})"
        )
        return result

    def set_filters(self, filters: SearchFilterState) -> Optional[BugPage]:
        """Apply a new filter state immediately and go back to the first page."""
        self._search_debouncer.cancel()
        with self._lock:
            self.filters = filters
            self.page = 0
            self._selected.clear()
            self.settings.save_filter_state(filters)
        return self.fetch(0)

    def set_search_term(self, term: str) -> None:
        """Queue a search; only the last term typed within the debounce window is fetched."""
        self._search_debouncer.call(term)

    def _apply_search_term(self, term: str) -> None:
        # Runs on the debounce timer thread
        with self._lock:
            filters = self.filters.with_search_term(term)
            self.filters = filters
            self.page = 0
            self._selected.clear()
            self.settings.save_filter_state(filters)
        self.fetch(0)

    @property
    def search_pending(self) -> bool:
        return self._search_debouncer.pending

    def flush_pending(self) -> bool:
        """Run a queued search right away (e.g. when the user presses Enter)."""
        return self._search_debouncer.flush()

    def change_page(self, page: int, page_size: Optional[int] = None) -> Optional[BugPage]:
        return self.fetch(page, page_size or self.page_size)

    def refresh(self) -> Optional[BugPage]:
        return self.fetch()

    @property
    def selected_ids(self) -> list[str]:
        """Selected bug ids in page order."""
        with self._lock:
            return [record.id for record in self.records if record.id in self._selected]

    def is_selected(self, bug_id: str) -> bool:
        with self._lock:
            return bug_id in self._selected

    def set_selected(self, bug_id: str, selected: bool = True) -> bool:
        """Select or deselect one row of the current page. Unknown ids are ignored."""
        with self._lock:
            if not any(record.id == bug_id for record in self.records):
                logger.debug(f"Ignoring selection of bug '{bug_id}' not on the current page")
                return False
            if selected:
                self._selected.add(bug_id)
            else:
                self._selected.discard(bug_id)
            return True

    def toggle_selected(self, bug_id: str) -> bool:
        """Flip one row's selection. Returns the new state."""
        selected = not self.is_selected(bug_id)
        return self.set_selected(bug_id, selected) and selected

    def select_all_on_page(self) -> None:
        with self._lock:
            self._selected = {record.id for record in self.records}

    def clear_selection(self) -> None:
        with self._lock:
            self._selected.clear()

    def _run_bulk_action(self, action: str, call: Callable[[list[str]], int]) -> int:
        bug_ids = self.selected_ids
        if not bug_ids:
            logger.debug(f"No bugs selected for {action}")
            return 0

        try:
            affected = call(bug_ids)
        except Exception as e:
            logger.error(f"Failed to {action} {len(bug_ids)} bugs: {e}")
            self.last_error = str(e)
            self._notify(f"Failed to {action} bug reports")
            return 0

        logger.info(f"{action.capitalize()}d {affected} of {len(bug_ids)} selected bugs")
        self.clear_selection()
        self.refresh()
        return affected

    def update_selected_status(self, status: str) -> int:
        """Set the status of every selected bug, then reload the page."""
        if status not in STATUSES:
            logger.warning(f"Ignoring bulk update to unknown status '{status}'")
            return 0
        return self._run_bulk_action("update", lambda bug_ids: self.source.update_status(bug_ids, status))

    def delete_selected(self) -> int:
        """Delete every selected bug, then reload the page."""
        return self._run_bulk_action("delete", self.source.delete_bugs)

    def window(self, viewport_height: int, scroll_offset: int = 0) -> VirtualWindow:
        """Rows of the current page to render for a viewport and scroll position."""
        return compute_window(
            len(self.records),
            viewport_height,
            scroll_offset,
            row_height=self.row_height,
            overscan=self.overscan,
        )

    def close(self) -> None:
        self._search_debouncer.cancel()


def create_settings(config: GridConfig) -> GridSettings:
    if config.settings_path:
        return GridSettings(JsonFileStorage(config.settings_path))
    return GridSettings(MemoryStorage())


def create_source(config: GridConfig, records: Optional[Iterable[BugRecord]] = None) -> BugSource:
    """Pick the data source for the configured grid mode."""
    if config.mode == "client":
        return LocalBugSource(records or [])
    return RemoteBugSource(config.api_base_url, timeout=config.request_timeout)


def create_orchestrator(
    config: GridConfig,
    records: Optional[Iterable[BugRecord]] = None,
    on_error: Optional[Callable[[str], None]] = None,
) -> BugGridOrchestrator:
    return BugGridOrchestrator(
        source=create_source(config, records),
        settings=create_settings(config),
        page_size=config.page_size,
        debounce_seconds=config.debounce_ms / 1000,
        on_error=on_error,
        row_height=config.row_height,
        overscan=config.overscan,
    )
