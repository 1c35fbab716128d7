"""
Fixture REST endpoints.

GET /v1/matches?date=YYYY-MM-DD  fixtures for a day, cache-first
GET /v1/live?date=YYYY-MM-DD     live refresh for a day, skipping the freshness check
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shared.models.domain import SyncResult
from sync.fixtures import FixtureSyncOrchestrator

from api.dependencies import get_fixture_sync, parse_day

router = APIRouter(prefix="/v1", tags=["matches"])


@router.get("/matches", response_model=SyncResult)
async def get_matches(
    date_str: Optional[str] = Query(
        None,
        alias="date",
        description="Date in YYYY-MM-DD format. Defaults to today (UTC).",
    ),
    sync: FixtureSyncOrchestrator = Depends(get_fixture_sync),
) -> SyncResult:
    """Tracked fixtures for a date, tagged with the source they were served from."""
    return await sync.get_fixtures(parse_day(date_str))


@router.get("/live", response_model=SyncResult)
async def get_live(
    date_str: Optional[str] = Query(
        None,
        alias="date",
        description="Date in YYYY-MM-DD format. Defaults to today (UTC).",
    ),
    sync: FixtureSyncOrchestrator = Depends(get_fixture_sync),
) -> SyncResult:
    """
    Refresh live scores for a date.

    Tries the free live feed against the cached fixtures first, then a
    quota-throttled primary refetch, and otherwise returns the cache with
    its age and the countdown to the next allowed refresh.
    """
    return await sync.refresh_live(parse_day(date_str))
