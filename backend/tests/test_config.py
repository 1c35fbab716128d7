"""
Tests for settings, the league catalogue and the secondary-feed circuit breaker.

Run: pytest backend/tests/test_config.py -v
"""
from __future__ import annotations

from datetime import date

import pytest

from shared.config import Settings
from shared.leagues import (
    ALL_LEAGUE_IDS,
    country_league_ids,
    first_division_id,
    league_meta,
    season_for_date,
)
from shared.models.enums import Gender
from shared.utils.circuit_breaker import CircuitBreaker, CircuitBreakerOpen, CircuitState


# ── Settings ────────────────────────────────────────────────────────────

def test_legacy_key_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MD_PRIMARY_API_KEYS", raising=False)
    monkeypatch.setenv("FOOTBALL_API_KEY", "first")
    monkeypatch.setenv("FOOTBALL_API_KEY_2", "second")
    monkeypatch.setenv("BZZOIRO_API_KEY", "token")
    settings = Settings()
    assert settings.primary_api_keys == ["first", "second"]
    assert settings.key_count == 2
    assert settings.secondary_configured


def test_prefixed_keys_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MD_PRIMARY_API_KEYS", '["a", "b", "c"]')
    monkeypatch.setenv("FOOTBALL_API_KEY", "legacy")
    assert Settings().primary_api_keys == ["a", "b", "c"]


@pytest.mark.parametrize("remaining,interval", [
    (200, 45.0),
    (101, 45.0),
    (100, 90.0),
    (41, 90.0),
    (40, 180.0),
    (0, 180.0),
])
def test_refetch_interval_tiers(remaining: int, interval: float) -> None:
    assert Settings(primary_api_keys=["k"]).refetch_interval_s(remaining) == interval


def test_refetch_tiers_sorted() -> None:
    settings = Settings(primary_api_keys=["k"], refetch_tiers=[(10, 120.0), (150, 30.0)])
    assert settings.refetch_tiers == [(150, 30.0), (10, 120.0)]
    assert settings.refetch_interval_s(151) == 30.0
    assert settings.refetch_interval_s(50) == 120.0


# ── League catalogue ────────────────────────────────────────────────────

def test_catalogue_tags() -> None:
    assert len(ALL_LEAGUE_IDS) == 41
    assert league_meta(140).division == 1
    assert league_meta(143).division == 0
    assert league_meta(898).gender == Gender.WOMEN


def test_unknown_league_falls_back_to_cup_tier() -> None:
    meta = league_meta(9999, "Portugal", "Taça")
    assert (meta.country, meta.name, meta.division) == ("Portugal", "Taça", 0)


def test_country_leagues_are_mens_divisions() -> None:
    assert country_league_ids("England") == [39, 40]
    assert first_division_id("Italy") == 135
    assert first_division_id("Atlantis") is None


@pytest.mark.parametrize("day,season", [
    (date(2025, 3, 8), 2024),
    (date(2025, 7, 31), 2024),
    (date(2025, 8, 1), 2025),
    (date(2025, 12, 20), 2025),
])
def test_season_for_date(day: date, season: int) -> None:
    assert season_for_date(day) == season


# ── Circuit breaker ─────────────────────────────────────────────────────

class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _fail() -> None:
    raise RuntimeError("upstream down")


async def _ok() -> str:
    return "ok"


@pytest.mark.asyncio
async def test_breaker_opens_after_threshold_and_recovers() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker("secondary_live", failure_threshold=2, recovery_timeout_s=60, clock=clock)

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitBreakerOpen):
        await breaker.call(_ok)

    clock.now = 61.0
    assert breaker.state == CircuitState.HALF_OPEN
    assert await breaker.call(_ok) == "ok"
    assert breaker.state == CircuitState.CLOSED
    assert breaker.stats["failure_count"] == 0


@pytest.mark.asyncio
async def test_failed_probe_reopens() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker("secondary_live", failure_threshold=1, recovery_timeout_s=10, clock=clock)
    with pytest.raises(RuntimeError):
        await breaker.call(_fail)
    clock.now = 11.0
    with pytest.raises(RuntimeError):
        await breaker.call(_fail)
    assert breaker.state == CircuitState.OPEN
