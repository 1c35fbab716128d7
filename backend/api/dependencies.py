"""
Dependency injection for the API service.
Provides the sync runtime and its orchestrators to route handlers.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import HTTPException

from sync.analysis import AnalysisOrchestrator
from sync.fixtures import FixtureSyncOrchestrator
from sync.quota import QuotaTracker
from sync.runtime import SyncRuntime

# Module-level singleton, initialized at startup
_runtime: SyncRuntime | None = None


def init_dependencies(runtime: SyncRuntime) -> None:
    """Initialize the module-level runtime. Called once at startup."""
    global _runtime
    _runtime = runtime


def get_runtime() -> SyncRuntime:
    if _runtime is None:
        raise RuntimeError("SyncRuntime not initialized. Call init_dependencies first.")
    return _runtime


def get_fixture_sync() -> FixtureSyncOrchestrator:
    """FastAPI dependency: the fixture-day sync orchestrator."""
    return get_runtime().fixtures


def get_analysis() -> AnalysisOrchestrator:
    """FastAPI dependency: the analysis orchestrator."""
    return get_runtime().analysis


def get_quota_tracker() -> QuotaTracker:
    return get_runtime().tracker


def parse_day(date_str: Optional[str]) -> str:
    """Validate a YYYY-MM-DD query value; defaults to today (UTC)."""
    if not date_str:
        return datetime.now(timezone.utc).date().isoformat()
    try:
        return date.fromisoformat(date_str).isoformat()
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid date format: {date_str}. Use YYYY-MM-DD.",
        )
