"""Shared fixtures: in-memory store, two-credential quota setup, fixture factory."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from shared.config import CacheBackend, Settings
from shared.models.domain import Fixture, FixtureStatusInfo, LeagueRef, Score, TeamRef
from shared.store import MemoryCacheStore
from sync.keys import KeyRotator
from sync.quota import QuotaTracker

TODAY = "2025-03-08"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        cache_backend=CacheBackend.MEMORY,
        primary_api_keys=["key-one", "key-two"],
        secondary_api_key="live-token",
        daily_call_limit=100,
        calls_per_analysis=5,
        metrics_enabled=False,
    )


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def tracker(store: MemoryCacheStore, settings: Settings) -> QuotaTracker:
    return QuotaTracker(store, settings.key_count, settings.daily_call_limit, today=lambda: TODAY)


@pytest.fixture
def rotator(settings: Settings, tracker: QuotaTracker) -> KeyRotator:
    return KeyRotator(settings.primary_api_keys, tracker)


FixtureFactory = Callable[..., Fixture]


@pytest.fixture
def make_fixture() -> FixtureFactory:
    def _make(
        fixture_id: int,
        home: str = "Real Madrid",
        away: str = "Barcelona",
        status: str = "NS",
        elapsed: Optional[int] = None,
        goals: tuple[Optional[int], Optional[int]] = (None, None),
        league_id: int = 140,
    ) -> Fixture:
        return Fixture(
            id=fixture_id,
            date=datetime(2025, 3, 8, 20, 0, tzinfo=timezone.utc),
            status=FixtureStatusInfo(short=status, elapsed=elapsed),
            home=TeamRef(id=fixture_id * 10 + 1, name=home),
            away=TeamRef(id=fixture_id * 10 + 2, name=away),
            goals=Score(home=goals[0], away=goals[1]),
            league=LeagueRef(id=league_id, name="La Liga", country="Spain", season=2024),
        )

    return _make
