"""
Keyword-based bug extraction.

Used when no LLM is configured or every LLM attempt failed. Deliberately
liberal: anything that is not clearly a question becomes a bug draft.
"""

import re
from typing import Any

from assistant.prompt_template import FALLBACK_CREATED_RESPONSE, FALLBACK_QUESTION_RESPONSE
from models.data_models import BugDraft

BUG_KEYWORDS = (
    "bug", "error", "issue", "problem", "broken", "not working", "crash", "fail",
    "incorrect", "wrong", "doesn't work", "can't", "unable", "freeze", "slow",
    "missing", "glitch", "stopped", "hanging", "timeout",
)
QUESTION_KEYWORDS = ("how", "what", "when", "where", "why", "help", "explain")

_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_BROWSER_RE = re.compile(r"(chrome|firefox|safari|edge|internet explorer|ie)", re.IGNORECASE)
_OS_RE = re.compile(r"(windows|mac|linux|android|ios|ubuntu|debian)", re.IGNORECASE)
_DEVICE_RE = re.compile(r"(mobile|phone|tablet|ipad|android|desktop|laptop)", re.IGNORECASE)
_HIGH_SEVERITY_RE = re.compile(r"(critical|crash|down|broken|freeze|freezes|hang|blocker|urgent)", re.IGNORECASE)
_LOW_SEVERITY_RE = re.compile(r"(minor|small|cosmetic|typo|slight)", re.IGNORECASE)
_URGENT_PRIORITY_RE = re.compile(r"(urgent|asap|critical|blocker|high priority)", re.IGNORECASE)
_LOW_PRIORITY_RE = re.compile(r"(low|minor|nice to have|low priority)", re.IGNORECASE)

# (keyword, title, expected result, actual result), first match wins
_TOPICS = (
    ("login", "Login functionality issue", "Login should work successfully", "Login fails"),
    ("save", "Save functionality issue", "Save operation should complete successfully", "Save operation fails"),
    ("load", "Loading issue", None, None),
    ("crash", "Application crash", "Application should work without crashing", "Application crashes"),
    ("slow", "Performance issue", "Application should perform at normal speed", "Application runs slowly"),
)
_RESULT_TOPICS = ("crash", "slow", "login", "save")


def is_question(message: str) -> bool:
    lowered = message.lower()
    has_bug_keywords = any(keyword in lowered for keyword in BUG_KEYWORDS)
    asks = any(lowered.startswith(keyword) for keyword in QUESTION_KEYWORDS) and "?" in message
    return asks and not has_bug_keywords


def _device(lowered: str) -> str:
    match = _DEVICE_RE.search(lowered)
    if not match:
        return "desktop"
    device = match.group(1)
    if device in ("mobile", "phone", "android"):
        return "mobile"
    if device in ("tablet", "ipad"):
        return "tablet"
    return "desktop"


def _title(message: str, lowered: str) -> str:
    for keyword, title, _, _ in _TOPICS:
        if keyword in lowered:
            return title

    title = message[:60].strip()
    if len(title) >= 60:
        title += "..."
    if "bug" not in title.lower() and "issue" not in title.lower():
        title = f"Issue: {title}"
    return title


def _results(message: str, lowered: str) -> tuple[str, str]:
    topics = {keyword: (expected, actual) for keyword, _, expected, actual in _TOPICS}
    for keyword in _RESULT_TOPICS:
        if keyword in lowered:
            return topics[keyword]
    return "System should work correctly", message


def extract_bug_fallback(message: str) -> dict[str, Any]:
    """
    Build a chat reply from keyword rules alone.

    Returns:
        Dict with `should_create_bug`, `response` and `bug_data` (a BugDraft
        or None when the message is a question rather than a report)
    """
    message = message or ""
    if is_question(message):
        return {
            "should_create_bug": False,
            "response": FALLBACK_QUESTION_RESPONSE,
            "bug_data": None,
        }

    lowered = message.lower()

    url_match = _URL_RE.search(message)
    browser_match = _BROWSER_RE.search(lowered)
    os_match = _OS_RE.search(lowered)

    severity = "medium"
    if _HIGH_SEVERITY_RE.search(lowered):
        severity = "high"
    elif _LOW_SEVERITY_RE.search(lowered):
        severity = "low"

    priority = "medium"
    if _URGENT_PRIORITY_RE.search(lowered):
        priority = "urgent"
    elif _LOW_PRIORITY_RE.search(lowered):
        priority = "low"

    if len(message) > 20:
        steps = f"Steps based on user description:\n1. {message}"
    else:
        steps = f"1. User reported: {message}\n2. Investigation needed for exact reproduction steps"

    expected, actual = _results(message, lowered)

    draft = BugDraft(
        title=_title(message, lowered),
        description=message if len(message) > 10 else f"User reported: {message}",
        severity=severity,
        priority=priority,
        environment="local",
        browser=browser_match.group(1) if browser_match else "chrome",
        device=_device(lowered),
        os=os_match.group(1) if os_match else "unknown",
        url=url_match.group(0) if url_match else "",
        steps_to_reproduce=steps,
        expected_result=expected,
        actual_result=actual,
    )
    return {
        "should_create_bug": True,
        "response": FALLBACK_CREATED_RESPONSE,
        "bug_data": draft,
    }
