"""
Supabase storage client for bug reports.

Serves the bug list API: search, filter, sort and page through
`winners_bug_reports` in the database, with attachment references joined
from `winners_attachments` and resolved to public storage URLs. Also
creates bugs from chat drafts and applies bulk status changes and deletes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from models.data_models import BugDraft, BugPage, BugRecord, SearchFilterState

logger = logging.getLogger(__name__)

BUG_SELECT = "*, attachments:winners_attachments(id, file_name, file_type, file_size, storage_path)"
SEARCH_COLUMNS = ("title", "description", "reporter_name", "reporter_email")

# Grid columns backed by a real table column (attachment_count is derived)
SORTABLE_COLUMNS = (
    "id", "title", "status", "severity", "priority", "reporter_name",
    "environment", "created_at", "updated_at",
)

# Characters with meaning inside a PostgREST or=(...) expression
_FILTER_SPECIAL_CHARS = str.maketrans({",": " ", "(": " ", ")": " "})


class BugStore:
    """Client for the bug report tables."""

    def __init__(self, supabase_url: str, supabase_key: str):
        """
        Initialize Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key (anon or service role key)
        """
        self.client: Client = create_client(supabase_url, supabase_key)
        self.table_name = "winners_bug_reports"
        self.attachments_table = "winners_attachments"
        self.bucket_name = "winners-test-assets"
        logger.info(f"Initialized BugStore for {supabase_url}")

    def _public_url(self, storage_path: str) -> str:
        return self.client.storage.from_(self.bucket_name).get_public_url(storage_path)

    def _to_record(self, row: Dict[str, Any]) -> BugRecord:
        """Flatten the attachments join into a count and a list of public URLs."""
        attachments = row.get("attachments") or []
        data = {key: value for key, value in row.items() if key != "attachments"}
        data["attachment_count"] = len(attachments)
        data["attachment_urls"] = [
            self._public_url(attachment["storage_path"])
            for attachment in attachments
            if attachment.get("storage_path")
        ]
        return BugRecord.model_validate(data)

    def _apply_filters(self, query, filters: SearchFilterState):
        """Apply search, multi-select and date filters to a select query."""
        term = filters.search_term.strip().translate(_FILTER_SPECIAL_CHARS).strip()
        if term:
            pattern = f"%{term}%"
            query = query.or_(",".join(f"{column}.ilike.{pattern}" for column in SEARCH_COLUMNS))

        if filters.status_filter:
            query = query.in_("status", filters.status_filter)
        if filters.severity_filter:
            query = query.in_("severity", filters.severity_filter)
        if filters.priority_filter:
            query = query.in_("priority", filters.priority_filter)
        if filters.reporter_filter:
            query = query.in_("reporter_name", filters.reporter_filter)

        if filters.date_range.start is not None:
            query = query.gte("created_at", filters.date_range.start.isoformat())
        if filters.date_range.end is not None:
            # Exclusive bound at the start of the next day keeps the end date inclusive
            next_day = filters.date_range.end.date() + timedelta(days=1)
            query = query.lt("created_at", next_day.isoformat())

        return query

    def list_bugs(self, filters: SearchFilterState, page: int = 0, page_size: int = 50) -> BugPage:
        """
        Fetch one page of bugs matching the filter state.

        Args:
            filters: Search term, multi-select filters, date range and sort
            page: 0-based page index
            page_size: Rows per page

        Returns:
            BugPage with the page's records and the exact total count of
            matching rows (unique_reporters is left empty)

        Raises:
            Exception if the query fails
        """
        if filters.date_range.is_inverted:
            logger.warning(
                f"Date range start {filters.date_range.start} is after end "
                f"{filters.date_range.end}; returning no bugs"
            )
            return BugPage(records=[], total_count=0, page=page, page_size=page_size)

        try:
            query = self.client.table(self.table_name).select(BUG_SELECT, count="exact")
            query = self._apply_filters(query, filters)
            query = query.order(filters.sort_by, desc=(filters.sort_order == "desc"))

            offset = page * page_size
            query = query.range(offset, offset + page_size - 1)

            result = query.execute()
            records = [self._to_record(row) for row in result.data or []]
            total = result.count or 0

            logger.debug(f"Fetched {len(records)} bugs (page {page}, total {total})")
            return BugPage(records=records, total_count=total, page=page, page_size=page_size)

        except Exception as e:
            logger.error(f"Failed to list bugs (page {page}): {e}")
            raise

    def get_unique_reporters(self) -> List[str]:
        """
        Get the distinct reporter names across all bugs, sorted.

        Returns:
            Sorted list of names; empty list if the query fails
        """
        try:
            result = self.client.table(self.table_name).select("reporter_name").not_.is_(
                "reporter_name", "null"
            ).execute()
            return sorted({row["reporter_name"] for row in result.data or [] if row.get("reporter_name")})

        except Exception as e:
            logger.error(f"Failed to get unique reporters: {e}")
            return []

    def get_bug(self, bug_id: str) -> Optional[BugRecord]:
        """
        Get a single bug with its attachments.

        Returns:
            BugRecord or None if not found
        """
        try:
            result = self.client.table(self.table_name).select(BUG_SELECT).eq("id", bug_id).execute()

            if result.data:
                return self._to_record(result.data[0])
            return None

        except Exception as e:
            logger.error(f"Failed to get bug {bug_id}: {e}")
            return None

    def list_all_bugs(
        self,
        filters: Optional[SearchFilterState] = None,
        batch_size: int = 1000,
    ) -> List[BugRecord]:
        """
        Fetch every bug matching `filters` (all bugs when None).

        Rows are read in batches of `batch_size` because the API caps the
        number of rows a single request returns. Used by the client-side
        grid mode and by CSV export.

        Raises:
            Exception if a batch query fails
        """
        filters = filters or SearchFilterState()
        if filters.date_range.is_inverted:
            logger.warning("Inverted date range; no bugs to list")
            return []

        records: List[BugRecord] = []
        offset = 0
        try:
            while True:
                query = self.client.table(self.table_name).select(BUG_SELECT)
                query = self._apply_filters(query, filters)
                query = query.order(filters.sort_by, desc=(filters.sort_order == "desc"))
                result = query.range(offset, offset + batch_size - 1).execute()

                batch = result.data or []
                records.extend(self._to_record(row) for row in batch)
                logger.debug(f"Fetched batch of {len(batch)} bugs at offset {offset}")

                if len(batch) < batch_size:
                    break
                offset += batch_size

        except Exception as e:
            logger.error(f"Failed to list all bugs (offset {offset}): {e}")
            raise

        logger.info(f"Fetched {len(records)} bugs")
        return records

    def create_bug(
        self,
        draft: BugDraft,
        reporter_name: Optional[str] = None,
        reporter_email: Optional[str] = None,
        test_project_id: Optional[str] = None,
    ) -> str:
        """
        Insert a new open bug built from a chat draft.

        Returns:
            The new bug's id

        Raises:
            Exception if insert fails
        """
        record = {
            "title": draft.title,
            "description": draft.description,
            "severity": draft.severity,
            "priority": draft.priority,
            "status": "open",
            "reporter_name": reporter_name,
            "reporter_email": reporter_email,
            "environment": draft.environment,
            "browser": draft.browser,
            "device": draft.device,
            "os": draft.os,
            "url": draft.url,
            "steps_to_reproduce": [draft.steps_to_reproduce] if draft.steps_to_reproduce else [],
            "expected_result": draft.expected_result,
            "actual_result": draft.actual_result,
            "tags": draft.tags,
        }
        if test_project_id:
            record["test_project_id"] = test_project_id

        try:
            result = self.client.table(self.table_name).insert(record).execute()
            if not result.data:
                raise RuntimeError("Insert returned no rows")

            bug_id = str(result.data[0]["id"])
            logger.info(f"Created bug {bug_id}: {draft.title}")
            return bug_id

        except Exception as e:
            logger.error(f"Failed to create bug '{draft.title}': {e}")
            raise

    def update_status(self, bug_ids: List[str], status: str) -> int:
        """
        Set the status of several bugs at once.

        Returns:
            Number of rows updated

        Raises:
            Exception if the update fails
        """
        if not bug_ids:
            return 0

        try:
            result = self.client.table(self.table_name).update({
                "status": status,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).in_("id", bug_ids).execute()

            updated = len(result.data or [])
            logger.info(f"Updated status of {updated} bugs to '{status}'")
            return updated

        except Exception as e:
            logger.error(f"Failed to update status of {len(bug_ids)} bugs: {e}")
            raise

    def delete_bugs(self, bug_ids: List[str]) -> int:
        """
        Delete several bugs along with their attachments.

        Attachment files are removed from storage and their rows deleted
        first. Failures there are logged and do not stop the bug delete.

        Returns:
            Number of bug rows deleted

        Raises:
            Exception if deleting the bug rows fails
        """
        if not bug_ids:
            return 0

        try:
            attachments = self.client.table(self.attachments_table).select("storage_path").in_(
                "bug_id", bug_ids
            ).execute()
            paths = [row["storage_path"] for row in attachments.data or [] if row.get("storage_path")]
            if paths:
                self.client.storage.from_(self.bucket_name).remove(paths)
                logger.debug(f"Removed {len(paths)} attachment files")
            self.client.table(self.attachments_table).delete().in_("bug_id", bug_ids).execute()
        except Exception as e:
            logger.warning(f"Failed to clean up attachments for {len(bug_ids)} bugs: {e}")

        try:
            result = self.client.table(self.table_name).delete(count="exact").in_("id", bug_ids).execute()
            deleted = result.count if result.count is not None else len(result.data or [])
            logger.info(f"Deleted {deleted} bugs")
            return deleted

        except Exception as e:
            logger.error(f"Failed to delete {len(bug_ids)} bugs: {e}")
            raise
