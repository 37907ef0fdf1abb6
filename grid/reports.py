"""Summary statistics and CSV export for a list of bug records."""

import csv
import io
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from models.data_models import PRIORITIES, SEVERITIES, STATUSES, BugRecord

CSV_COLUMNS = (
    "ID",
    "Title",
    "Description",
    "Severity",
    "Priority",
    "Status",
    "Reporter",
    "Reporter Email",
    "Environment",
    "Browser",
    "Device",
    "OS",
    "URL",
    "Steps to Reproduce",
    "Expected Result",
    "Actual Result",
    "Tags",
    "Created At",
    "Updated At",
    "Resolved At",
    "Attachment Count",
)


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _csv_row(bug: BugRecord) -> dict[str, Any]:
    return {
        "ID": bug.id,
        "Title": bug.title,
        "Description": bug.description or "",
        "Severity": bug.severity or "",
        "Priority": bug.priority or "",
        "Status": bug.status or "",
        "Reporter": bug.reporter_name or "",
        "Reporter Email": bug.reporter_email or "",
        "Environment": bug.environment or "",
        "Browser": bug.browser or "",
        "Device": bug.device or "",
        "OS": bug.os or "",
        "URL": bug.url or "",
        "Steps to Reproduce": "; ".join(bug.steps_to_reproduce),
        "Expected Result": bug.expected_result or "",
        "Actual Result": bug.actual_result or "",
        "Tags": ", ".join(bug.tags),
        "Created At": _iso(bug.created_at),
        "Updated At": _iso(bug.updated_at),
        "Resolved At": _iso(bug.resolved_at),
        "Attachment Count": bug.attachment_count,
    }


def export_csv(bugs: Iterable[BugRecord]) -> str:
    """Render bugs as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\r\n")
    writer.writeheader()
    for bug in bugs:
        writer.writerow(_csv_row(bug))
    return buffer.getvalue()


def export_filename(prefix: str = "bug-reports", today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"{prefix}-{today.isoformat()}.csv"


def top_reporters(bugs: Iterable[BugRecord], limit: int = 5) -> list[dict[str, Any]]:
    counts = Counter(bug.reporter_name for bug in bugs if bug.reporter_name)
    # Ties broken alphabetically so the ranking is deterministic
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "count": count} for name, count in ranked[:limit]]


def summary_stats(bugs: Iterable[BugRecord], now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Count bugs by status, severity and priority plus recent activity.

    "Today" starts at UTC midnight of `now`; "this week" is the trailing
    seven days. Missing categorical values count as open / low / low.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)

    by_status = {status: 0 for status in STATUSES}
    by_severity = {severity: 0 for severity in SEVERITIES}
    by_priority = {priority: 0 for priority in PRIORITIES}
    activity = {
        "created_today": 0,
        "resolved_today": 0,
        "created_this_week": 0,
        "resolved_this_week": 0,
    }

    total = 0
    for bug in bugs:
        total += 1
        by_status[bug.status or "open"] += 1
        by_severity[bug.severity or "low"] += 1
        by_priority[bug.priority or "low"] += 1

        if bug.created_at is not None:
            if bug.created_at >= start_of_today:
                activity["created_today"] += 1
            if bug.created_at >= week_ago:
                activity["created_this_week"] += 1
        if bug.resolved_at is not None:
            if bug.resolved_at >= start_of_today:
                activity["resolved_today"] += 1
            if bug.resolved_at >= week_ago:
                activity["resolved_this_week"] += 1

    return {
        "total": total,
        "open": by_status["open"],
        "in_progress": by_status["in_progress"],
        "resolved": by_status["resolved"],
        "closed": by_status["closed"],
        "by_status": by_status,
        "by_severity": by_severity,
        "by_priority": by_priority,
        "recent_activity": activity,
    }
