"""
API routes for the bug grid.

The list endpoint is the remote query interface used by the grid in server
mode: search, filters, sorting and paging all happen in the database.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from assistant.bug_chat import BugChatAssistant, ChatMessage
from assistant.llm_client import LLMClient
from grid.reports import export_csv, export_filename, summary_stats, top_reporters
from models.data_models import PRIORITIES, SEVERITIES, STATUSES, DateRange, SearchFilterState
from storage.supabase_client import SORTABLE_COLUMNS, BugStore
from utils.config_loader import load_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["bugs"])

MAX_CHAT_MESSAGE_LENGTH = 5000
BUG_CREATE_FAILED_RESPONSE = (
    "I understand you're describing a bug, but I encountered an error creating "
    "the bug report. Please try again or create it manually."
)

_store: Optional[BugStore] = None
_assistant: Optional[BugChatAssistant] = None


def get_store() -> BugStore:
    """Shared BugStore, created from the environment on first use."""
    global _store
    if _store is None:
        config = load_config()
        _store = BugStore(config.credentials.supabase_url, config.credentials.supabase_key)
    return _store


def get_assistant() -> BugChatAssistant:
    """Shared chat assistant; without an LLM key it answers from keyword rules."""
    global _assistant
    if _assistant is None:
        credentials = load_config().credentials
        llm_client = None
        if credentials.llm_api_key:
            llm_client = LLMClient(
                provider=credentials.llm_provider,
                model=credentials.llm_model,
                api_key=credentials.llm_api_key,
            )
        else:
            logger.warning(f"No {credentials.llm_provider} API key configured; bug chat uses fallback extraction")
        _assistant = BugChatAssistant(llm_client=llm_client)
    return _assistant


def _split_values(raw: Optional[str], allowed: Optional[tuple] = None, name: str = "") -> List[str]:
    """Split a comma-separated query value, rejecting values outside `allowed`."""
    if not raw:
        return []
    values = [value.strip() for value in raw.split(",") if value.strip()]
    if allowed is not None:
        invalid = [value for value in values if value not in allowed]
        if invalid:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid {name} value(s): {', '.join(invalid)}. Allowed: {', '.join(allowed)}"
            )
    return values


def _parse_date(raw: Optional[str], name: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = datetime.strptime(raw, "%Y-%m-%d")
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name}: '{raw}'. Expected YYYY-MM-DD (e.g., '2024-06-15')"
        )
    return parsed.replace(tzinfo=timezone.utc)


def bug_filters(
    search: Optional[str] = Query(None, description="Case-insensitive substring over title, description, reporter name and email"),
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    severity: Optional[str] = Query(None, description="Comma-separated severities"),
    priority: Optional[str] = Query(None, description="Comma-separated priorities"),
    reporters: Optional[str] = Query(None, description="Comma-separated reporter names"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Created on or after (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Created on or before (YYYY-MM-DD, inclusive)"),
    sort_by: str = Query("created_at", alias="sortBy", description="Column to sort by"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$", description="'asc' or 'desc'"),
) -> SearchFilterState:
    """Translate list query parameters into a SearchFilterState (400 on bad values)."""
    if sort_by not in SORTABLE_COLUMNS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid sortBy: '{sort_by}'. Allowed: {', '.join(SORTABLE_COLUMNS)}"
        )

    return SearchFilterState(
        search_term=search or "",
        status_filter=_split_values(status, STATUSES, "status"),
        severity_filter=_split_values(severity, SEVERITIES, "severity"),
        priority_filter=_split_values(priority, PRIORITIES, "priority"),
        reporter_filter=_split_values(reporters),
        date_range=DateRange(start=_parse_date(start_date, "startDate"), end=_parse_date(end_date, "endDate")),
        sort_by=sort_by,
        sort_order=sort_order,
    )


class ChatRequest(BaseModel):
    """Request body for the AI bug chat endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = ""
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    test_project_id: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None


class BulkStatusUpdate(BaseModel):
    """Request body for a bulk status change of selected rows."""

    ids: List[str] = Field(default_factory=list)
    status: str = ""


class BulkDelete(BaseModel):
    """Request body for deleting selected rows."""

    ids: List[str] = Field(default_factory=list)


def _require_ids(ids: List[str]) -> List[str]:
    bug_ids = [bug_id for bug_id in ids if bug_id.strip()]
    if not bug_ids:
        raise HTTPException(status_code=400, detail="Bug IDs are required")
    return bug_ids


@router.get("/bugs")
def list_bugs(
    page: int = Query(0, ge=0, description="Page number (0-indexed)"),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize", description="Bugs per page (max 200)"),
    filters: SearchFilterState = Depends(bug_filters),
    store: BugStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    List bugs with search, filters, sorting and pagination.

    Returns:
    - bugs: Bug objects with attachment_count and attachment_urls
    - pagination: total, page, pageSize, totalPages
    - filters: uniqueReporters across all bugs (for the reporter filter options)
    """
    try:
        result = store.list_bugs(filters, page=page, page_size=page_size)
        reporters = store.get_unique_reporters()

        logger.info(
            f"Listed {len(result.records)} bugs (page {page}, pageSize {page_size}, "
            f"total {result.total_count}, sort {filters.sort_by} {filters.sort_order})"
        )

        return {
            "bugs": [record.model_dump(mode="json") for record in result.records],
            "pagination": {
                "total": result.total_count,
                "page": page,
                "pageSize": page_size,
                "totalPages": result.total_pages,
            },
            "filters": {
                "uniqueReporters": reporters,
            },
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list bugs: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch bug reports: {str(e)}")


@router.patch("/bugs")
def update_bug_status(request: BulkStatusUpdate, store: BugStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Set the status of several bugs (the grid's bulk action on selected rows).

    Raises:
    - 400: If no ids are given or the status is not a known status
    """
    bug_ids = _require_ids(request.ids)
    if request.status not in STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status: '{request.status}'. Allowed: {', '.join(STATUSES)}"
        )

    try:
        updated = store.update_status(bug_ids, request.status)
        logger.info(f"Bulk status update to '{request.status}': {updated} of {len(bug_ids)} bugs")
        return {"updated": updated}

    except Exception as e:
        logger.error(f"Failed to update bug status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update bug reports: {str(e)}")


@router.delete("/bugs")
def delete_bugs(request: BulkDelete, store: BugStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Delete several bugs and their attachments.

    Raises:
    - 400: If no ids are given
    """
    bug_ids = _require_ids(request.ids)

    try:
        deleted = store.delete_bugs(bug_ids)
        logger.info(f"Bulk delete: {deleted} of {len(bug_ids)} bugs")
        return {"deleted": deleted}

    except Exception as e:
        logger.error(f"Failed to delete bugs: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete bug reports: {str(e)}")


# NOTE: /bugs/stats and /bugs/export must come BEFORE /bugs/{bug_id}

@router.get("/bugs/stats")
def get_bug_stats(store: BugStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Summary counts over all bugs.

    Returns totals by status, severity and priority, today's and this week's
    activity, and the five most active reporters.
    """
    try:
        bugs = store.list_all_bugs()
        stats = summary_stats(bugs)
        stats["top_reporters"] = top_reporters(bugs)
        logger.info(f"Computed stats over {stats['total']} bugs")
        return stats

    except Exception as e:
        logger.error(f"Failed to compute bug stats: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to compute bug stats: {str(e)}")


@router.get("/bugs/export")
def export_bugs(
    filters: SearchFilterState = Depends(bug_filters),
    store: BugStore = Depends(get_store),
) -> Response:
    """Download every bug matching the filters as CSV."""
    try:
        bugs = store.list_all_bugs(filters)
        filename = export_filename()
        logger.info(f"Exporting {len(bugs)} bugs to {filename}")
        return Response(
            content=export_csv(bugs),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except Exception as e:
        logger.error(f"Failed to export bugs: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to export bugs: {str(e)}")


@router.get("/bugs/{bug_id}")
def get_bug(bug_id: str, store: BugStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Get a single bug with attachment URLs.

    Raises:
    - 404: If the bug is not found
    """
    bug = store.get_bug(bug_id)
    if bug is None:
        raise HTTPException(status_code=404, detail=f"Bug not found: {bug_id}")
    return bug.model_dump(mode="json")


@router.post("/ai-bug-chat")
def ai_bug_chat(
    request: ChatRequest,
    store: BugStore = Depends(get_store),
    assistant: BugChatAssistant = Depends(get_assistant),
) -> Dict[str, Any]:
    """
    Turn a chat message into a bug report.

    The assistant decides whether the message describes a bug. If so, the
    extracted draft is stored as a new open bug.

    Returns:
    - response: Message to show in the chat
    - bugCreated: Whether a bug was stored
    - bugId: The new bug's id (or null)
    - source: 'llm' or 'fallback'
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    if len(request.message) > MAX_CHAT_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Message too long (max {MAX_CHAT_MESSAGE_LENGTH} characters)"
        )

    try:
        reply = assistant.respond(request.message, request.conversation_history)

        bug_id = None
        if reply.should_create_bug and reply.bug_data is not None:
            try:
                bug_id = store.create_bug(
                    reply.bug_data,
                    reporter_name=request.reporter_name,
                    reporter_email=request.reporter_email,
                    test_project_id=request.test_project_id,
                )
            except Exception as e:
                logger.error(f"Chat extracted a bug but storing it failed: {e}")
                return {
                    "response": BUG_CREATE_FAILED_RESPONSE,
                    "bugCreated": False,
                    "bugId": None,
                    "source": reply.source,
                }

        return {
            "response": reply.response,
            "bugCreated": bug_id is not None,
            "bugId": bug_id,
            "source": reply.source,
        }

    except Exception as e:
        logger.error(f"AI bug chat failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process chat message: {str(e)}")
