"""
Tests for the fixture-day cache-versus-upstream policy.

The primary and secondary connectors are mocked; the store, quota tracker
and key rotator are the real in-memory ones.

Run: pytest backend/tests/test_fixtures_sync.py -v
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from ingest.normalization.reconciler import LiveReconciler
from ingest.providers.base import ProviderLogicalError, TransportError
from shared.config import Settings
from shared.models.domain import Fixture, FixtureDaySnapshot
from shared.models.enums import SyncSource
from shared.store import CacheStoreError, MemoryCacheStore
from shared.utils.circuit_breaker import CircuitBreaker
from sync.documents import DocumentRepository
from sync.fixtures import FixtureSyncOrchestrator, SyncUnavailableError, track_fixtures
from sync.keys import KeyRotator
from sync.quota import QuotaTracker

TODAY = "2025-03-08"
NOW = datetime(2025, 3, 8, 20, 30, tzinfo=timezone.utc)


def _primary(tracker: QuotaTracker, fixtures: list[Fixture]) -> MagicMock:
    """Primary client mock that bills one call per successful request, like the real one."""
    primary = MagicMock()

    async def fixtures_by_date(day, credential):
        await tracker.record_call(credential.index)
        return fixtures

    primary.fixtures_by_date = AsyncMock(side_effect=fixtures_by_date)
    return primary


def _secondary(records: Optional[list[dict]] = None, error: Optional[Exception] = None) -> MagicMock:
    secondary = MagicMock()
    secondary.configured = True
    secondary.live_now = AsyncMock(return_value=records or [], side_effect=error)
    return secondary


def _orchestrator(
    store: MemoryCacheStore,
    tracker: QuotaTracker,
    rotator: KeyRotator,
    settings: Settings,
    primary: MagicMock,
    secondary: Optional[MagicMock] = None,
    breaker: Optional[CircuitBreaker] = None,
) -> FixtureSyncOrchestrator:
    return FixtureSyncOrchestrator(
        documents=DocumentRepository(store),
        tracker=tracker,
        rotator=rotator,
        primary=primary,
        reconciler=LiveReconciler(),
        settings=settings,
        secondary=secondary,
        breaker=breaker,
        clock=lambda: NOW,
    )


async def _seed(store: MemoryCacheStore, matches: list[Fixture], age_s: float) -> None:
    snapshot = FixtureDaySnapshot(date=TODAY, matches=matches, fetched_at=NOW - timedelta(seconds=age_s))
    await DocumentRepository(store).save_snapshot(snapshot)


# ── Tracking filter ─────────────────────────────────────────────────────

def test_track_fixtures_drops_untracked_and_tags(make_fixture) -> None:
    tracked = track_fixtures([make_fixture(1), make_fixture(2, league_id=999)])
    assert [f.id for f in tracked] == [1]
    assert tracked[0].league_meta is not None
    assert tracked[0].league_meta.division == 1
    assert tracked[0].live_source == "api-football"


# ── Primary path ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cold_cache_fetches_primary_then_serves_cache(store, tracker, rotator, settings, make_fixture) -> None:
    primary = _primary(tracker, [make_fixture(1), make_fixture(2, league_id=999)])
    orchestrator = _orchestrator(store, tracker, rotator, settings, primary)

    first = await orchestrator.get_fixtures(TODAY)
    assert first.source == SyncSource.PRIMARY_PROVIDER
    assert first.api_calls == 1
    assert [f.id for f in first.matches] == [1]
    assert first.quota is not None and first.quota.used == 1

    second = await orchestrator.get_fixtures(TODAY)
    assert second.source == SyncSource.CACHE
    assert second.api_calls == 0
    assert [f.id for f in second.matches] == [1]
    assert primary.fixtures_by_date.await_count == 1
    assert (await tracker.aggregate_quota()).used == 1


@pytest.mark.asyncio
async def test_fresh_cache_costs_nothing(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1)], age_s=60)
    primary = _primary(tracker, [])
    secondary = _secondary()
    orchestrator = _orchestrator(store, tracker, rotator, settings, primary, secondary)

    for _ in range(2):
        result = await orchestrator.get_fixtures(TODAY)
        assert result.source == SyncSource.CACHE
        assert result.api_calls == 0
        assert result.cache_age_s == 60
        assert result.next_refresh_in == settings.idle_cache_ttl_s - 60

    primary.fixtures_by_date.assert_not_awaited()
    secondary.live_now.assert_not_awaited()
    assert (await tracker.aggregate_quota()).used == 0


@pytest.mark.asyncio
async def test_live_snapshot_uses_short_ttl(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1, status="2H", elapsed=60)], age_s=settings.live_cache_ttl_s + 1)
    primary = _primary(tracker, [make_fixture(1, status="2H", elapsed=61)])
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.PRIMARY_PROVIDER
    assert result.live_updated == 1


@pytest.mark.asyncio
async def test_primary_rotates_credentials(store, tracker, rotator, settings, make_fixture) -> None:
    primary = MagicMock()

    async def fixtures_by_date(day, credential):
        if credential.index == 0:
            raise ProviderLogicalError("api-football", {"requests": "limit reached"})
        await tracker.record_call(credential.index)
        return [make_fixture(1)]

    primary.fixtures_by_date = AsyncMock(side_effect=fixtures_by_date)
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.PRIMARY_PROVIDER
    assert (await tracker.quota_for(0)).remaining == 0
    assert (await tracker.quota_for(1)).used == 1


@pytest.mark.asyncio
async def test_empty_primary_does_not_overwrite_cache(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1), make_fixture(2)], age_s=settings.idle_cache_ttl_s + 10)
    primary = _primary(tracker, [])
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)

    assert result.source == SyncSource.CACHE
    assert result.api_calls == 1
    assert [f.id for f in result.matches] == [1, 2]
    snapshot = await DocumentRepository(store).get_snapshot(TODAY)
    assert snapshot is not None and snapshot.match_count == 2


@pytest.mark.asyncio
async def test_empty_primary_without_cache_returns_empty_list(store, tracker, rotator, settings) -> None:
    primary = _primary(tracker, [])
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.PRIMARY_PROVIDER
    assert result.matches == []
    assert await DocumentRepository(store).get_snapshot(TODAY) is None


# ── Secondary path ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stale_cache_refreshed_from_secondary(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1, status="1H", elapsed=30), make_fixture(2, "Getafe", "Sevilla")], age_s=300)
    primary = _primary(tracker, [])
    secondary = _secondary([{
        "home_team": "Real Madrid", "away_team": "FC Barcelona",
        "score_home": 2, "score_away": 1, "status": "2nd_half", "minute": 67,
    }])
    result = await _orchestrator(store, tracker, rotator, settings, primary, secondary).get_fixtures(TODAY)

    assert result.source == SyncSource.SECONDARY_FEED
    assert result.live_updated == 1
    assert result.api_calls == 0
    primary.fixtures_by_date.assert_not_awaited()

    snapshot = await DocumentRepository(store).get_snapshot(TODAY)
    assert snapshot is not None
    assert snapshot.fetched_at == NOW
    merged = {f.id: f for f in snapshot.matches}
    assert merged[1].status.short == "2H"
    assert (merged[1].goals.home, merged[1].goals.away) == (2, 1)
    assert merged[2].status.short == "NS"


@pytest.mark.asyncio
async def test_secondary_skipped_without_cache(store, tracker, rotator, settings, make_fixture) -> None:
    primary = _primary(tracker, [make_fixture(1)])
    secondary = _secondary([{"home_team": "Real Madrid", "away_team": "Barcelona"}])
    result = await _orchestrator(store, tracker, rotator, settings, primary, secondary).get_fixtures(TODAY)
    assert result.source == SyncSource.PRIMARY_PROVIDER
    secondary.live_now.assert_not_awaited()


@pytest.mark.asyncio
async def test_secondary_failure_falls_through_to_primary(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1)], age_s=settings.idle_cache_ttl_s + 10)
    primary = _primary(tracker, [make_fixture(1), make_fixture(3)])
    secondary = _secondary(error=TransportError("bzzoiro", "HTTP 503 on /live/"))
    result = await _orchestrator(store, tracker, rotator, settings, primary, secondary).get_fixtures(TODAY)
    assert result.source == SyncSource.PRIMARY_PROVIDER
    assert [f.id for f in result.matches] == [1, 3]


@pytest.mark.asyncio
async def test_open_circuit_skips_secondary(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1, status="1H", elapsed=10)], age_s=0)
    secondary = _secondary(error=TransportError("bzzoiro", "timeout"))
    breaker = CircuitBreaker("secondary_live", failure_threshold=2, recovery_timeout_s=60, clock=lambda: 0.0)
    orchestrator = _orchestrator(store, tracker, rotator, settings, _primary(tracker, []), secondary, breaker)

    for _ in range(4):
        result = await orchestrator.refresh_live(TODAY)
        assert result.source == SyncSource.CACHE
    assert secondary.live_now.await_count == 2


# ── Throttling and exhaustion ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_live_poll_throttled_by_refetch_interval(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1, status="1H", elapsed=10)], age_s=30)
    primary = _primary(tracker, [make_fixture(1, status="1H", elapsed=11)])
    result = await _orchestrator(store, tracker, rotator, settings, primary).refresh_live(TODAY)

    # 200 remaining puts the interval at 45s
    assert result.source == SyncSource.CACHE
    assert result.next_refresh_in == 15
    primary.fixtures_by_date.assert_not_awaited()


@pytest.mark.asyncio
async def test_low_quota_widens_interval(store, tracker, rotator, settings, make_fixture) -> None:
    await tracker.exhaust(0)
    for _ in range(70):
        await tracker.record_call(1)
    await _seed(store, [make_fixture(1, status="1H", elapsed=10)], age_s=120)
    primary = _primary(tracker, [make_fixture(1)])
    result = await _orchestrator(store, tracker, rotator, settings, primary).refresh_live(TODAY)

    assert result.quota is not None and result.quota.remaining == 30
    assert result.source == SyncSource.CACHE
    assert result.next_refresh_in == 60
    primary.fixtures_by_date.assert_not_awaited()


@pytest.mark.asyncio
async def test_exhausted_quota_without_cache_is_empty(store, tracker, rotator, settings) -> None:
    await tracker.exhaust(0)
    await tracker.exhaust(1)
    primary = _primary(tracker, [])
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.EMPTY
    assert result.matches == []
    assert result.quota is not None and result.quota.remaining == 0
    primary.fixtures_by_date.assert_not_awaited()


@pytest.mark.asyncio
async def test_all_credentials_failing_serves_stale_cache(store, tracker, rotator, settings, make_fixture) -> None:
    await _seed(store, [make_fixture(1)], age_s=settings.idle_cache_ttl_s + 10)
    primary = MagicMock()
    primary.fixtures_by_date = AsyncMock(side_effect=TransportError("api-football", "HTTP 500"))
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.CACHE
    assert result.api_calls == 0
    assert [f.id for f in result.matches] == [1]
    assert result.quota is not None and result.quota.remaining == 0


@pytest.mark.asyncio
async def test_all_credentials_failing_cold_reports_exhausted_quota(store, tracker, rotator, settings) -> None:
    primary = MagicMock()
    primary.fixtures_by_date = AsyncMock(side_effect=TransportError("api-football", "HTTP 500"))
    result = await _orchestrator(store, tracker, rotator, settings, primary).get_fixtures(TODAY)
    assert result.source == SyncSource.EMPTY
    assert primary.fixtures_by_date.await_count == 2
    assert result.quota is not None
    assert result.quota.remaining == (await tracker.aggregate_quota()).remaining == 0


# ── Store failure ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unreachable_store_raises_sync_unavailable(tracker, rotator, settings) -> None:
    broken = MagicMock()
    broken.get = AsyncMock(side_effect=CacheStoreError("connection refused"))
    orchestrator = FixtureSyncOrchestrator(
        documents=DocumentRepository(broken),
        tracker=tracker,
        rotator=rotator,
        primary=MagicMock(),
        reconciler=LiveReconciler(),
        settings=settings,
        clock=lambda: NOW,
    )
    with pytest.raises(SyncUnavailableError):
        await orchestrator.get_fixtures(TODAY)
    with pytest.raises(SyncUnavailableError):
        await orchestrator.refresh_live(TODAY)
