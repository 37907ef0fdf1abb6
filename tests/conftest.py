"""Shared pytest fixtures and configuration."""

from datetime import datetime, timezone

import pytest

from models.data_models import BugRecord


@pytest.fixture
def test_env(monkeypatch, tmp_path):
    """
    Set valid test environment variables.

    Lets config be loaded during tests without requiring real credentials.
    """
    monkeypatch.setenv("SUPABASE_URL", "https://test-project.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test_supabase_key_1234567890")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-1234567890")
    monkeypatch.setenv("BUG_GRID_MODE", "client")
    monkeypatch.setenv("BUG_GRID_PAGE_SIZE", "25")
    monkeypatch.setenv("BUG_GRID_SETTINGS_PATH", str(tmp_path / "grid-settings.json"))

    return {
        "supabase_url": "https://test-project.supabase.co",
        "supabase_key": "test_supabase_key_1234567890",
        "openai_api_key": "sk-test-1234567890",
        "log_level": "DEBUG",
        "settings_path": str(tmp_path / "grid-settings.json"),
    }


@pytest.fixture
def invalid_env(monkeypatch):
    """
    Set up invalid/missing environment variables for testing validation.
    """
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")


def make_bug(bug_id, **fields) -> BugRecord:
    """Build a BugRecord with sensible defaults for the fields a test doesn't care about."""
    data = {
        "id": bug_id,
        "title": f"Bug {bug_id}",
        "status": "open",
        "severity": "medium",
        "priority": "medium",
        "reporter_name": "Alice",
        "created_at": datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc),
    }
    data.update(fields)
    return BugRecord(**data)


@pytest.fixture
def sample_bugs():
    """Five bugs covering every severity, status and a few reporters."""
    return [
        make_bug("1", title="Login button unresponsive", severity="critical", priority="urgent",
                 reporter_name="Alice", created_at=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)),
        make_bug("2", title="Typo on pricing page", severity="low", priority="low", status="resolved",
                 reporter_name="Bob", created_at=datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)),
        make_bug("3", title="Checkout crash on Safari", severity="high", priority="high",
                 description="App crashes when paying", reporter_name="Carol",
                 created_at=datetime(2024, 3, 3, 9, 0, tzinfo=timezone.utc)),
        make_bug("4", title="Slow dashboard", severity="medium", status="in_progress",
                 reporter_name="Alice", created_at=datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)),
        make_bug("5", title="Broken avatar upload", severity="high", status="closed",
                 reporter_name=None, created_at=None),
    ]
