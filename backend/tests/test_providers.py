"""
Connector tests against a mocked HTTP transport.

Run: pytest backend/tests/test_providers.py -v
"""
from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from ingest.providers.api_football import (
    AUTH_HEADER,
    ApiFootballClient,
    parse_odds,
    parse_team_statistics,
)
from ingest.providers.base import ProviderLogicalError, TransportError
from ingest.providers.bzzoiro import BzzoiroClient
from shared.utils.http_client import ProviderHTTPClient
from sync.keys import Credential
from sync.quota import QuotaTracker

CREDENTIAL = Credential(index=1, key="key-two")

FIXTURE_ITEM: dict[str, Any] = {
    "fixture": {
        "id": 1035001,
        "date": "2025-03-08T20:00:00+00:00",
        "timestamp": 1741464000,
        "status": {"short": "1H", "long": "First Half", "elapsed": 23},
    },
    "league": {"id": 140, "name": "La Liga", "country": "Spain", "season": 2024},
    "teams": {
        "home": {"id": 541, "name": "Real Madrid", "logo": None},
        "away": {"id": 529, "name": "Barcelona", "logo": None},
    },
    "goals": {"home": 1, "away": 0},
}


def _http(provider: str, handler: Callable[[httpx.Request], httpx.Response]) -> ProviderHTTPClient:
    return ProviderHTTPClient(
        provider, "https://upstream.test", max_retries=1, transport=httpx.MockTransport(handler)
    )


async def _api_football(tracker: QuotaTracker, handler) -> ApiFootballClient:
    client = ApiFootballClient(_http("api-football", handler), tracker, head_to_head_last=5)
    await client.start()
    return client


# ── API-Football ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fixtures_by_date_sends_key_and_records_once(tracker: QuotaTracker) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"errors": [], "response": [FIXTURE_ITEM, {"fixture": {}}]})

    client = await _api_football(tracker, handler)
    try:
        fixtures = await client.fixtures_by_date("2025-03-08", CREDENTIAL)
    finally:
        await client.close()

    assert [f.id for f in fixtures] == [1035001]
    assert fixtures[0].status.short == "1H"
    assert fixtures[0].home.name == "Real Madrid"
    assert seen[0].headers[AUTH_HEADER] == "key-two"
    assert seen[0].url.path == "/fixtures"
    assert seen[0].url.params["date"] == "2025-03-08"
    assert (await tracker.quota_for(1)).used == 1
    assert (await tracker.quota_for(0)).used == 0


@pytest.mark.asyncio
async def test_logical_error_is_raised_and_not_recorded(tracker: QuotaTracker) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": {"requests": "You have reached the request limit"}, "response": []})

    client = await _api_football(tracker, handler)
    try:
        with pytest.raises(ProviderLogicalError) as exc_info:
            await client.fixtures_by_date("2025-03-08", CREDENTIAL)
    finally:
        await client.close()

    assert "request limit" in str(exc_info.value)
    assert (await tracker.quota_for(1)).used == 0


@pytest.mark.asyncio
async def test_http_error_becomes_transport_error(tracker: QuotaTracker) -> None:
    client = await _api_football(tracker, lambda request: httpx.Response(500, text="upstream down"))
    try:
        with pytest.raises(TransportError):
            await client.odds(1035001, CREDENTIAL)
    finally:
        await client.close()
    assert (await tracker.quota_for(1)).used == 0


@pytest.mark.asyncio
async def test_invalid_json_becomes_transport_error(tracker: QuotaTracker) -> None:
    client = await _api_football(tracker, lambda request: httpx.Response(200, text="<html>"))
    try:
        with pytest.raises(TransportError):
            await client.injuries(1035001, CREDENTIAL)
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_head_to_head_params(tracker: QuotaTracker) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"errors": [], "response": [FIXTURE_ITEM]})

    client = await _api_football(tracker, handler)
    try:
        h2h = await client.head_to_head(541, 529, CREDENTIAL)
    finally:
        await client.close()

    assert len(h2h) == 1
    assert seen[0].url.params["h2h"] == "541-529"
    assert seen[0].url.params["last"] == "5"


@pytest.mark.asyncio
async def test_team_statistics_without_form_is_none(tracker: QuotaTracker) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [], "response": {"form": None, "fixtures": {}}})

    client = await _api_football(tracker, handler)
    try:
        assert await client.team_statistics(541, 143, 2024, CREDENTIAL) is None
    finally:
        await client.close()
    # the call still happened and is billed
    assert (await tracker.quota_for(1)).used == 1


def test_parse_team_statistics_totals() -> None:
    raw = {
        "form": "WWDLW",
        "fixtures": {
            "played": {"total": 26},
            "wins": {"total": 18},
            "draws": {"total": 5},
            "loses": {"total": 3},
        },
        "goals": {"for": {"total": {"total": 58}}, "against": {"total": {"total": None}}},
        "penalty": {"missed": {"total": 2}},
    }
    stats = parse_team_statistics(raw, team_id=541, league_id=140, season=2024)
    assert stats is not None
    assert (stats.played, stats.wins, stats.draws, stats.losses) == (26, 18, 5, 3)
    assert stats.goals_for == 58
    assert stats.goals_against == 0
    assert stats.penalty_missed == 2
    assert stats.rank is None


def test_parse_odds_takes_match_winner() -> None:
    raw = [{
        "bookmakers": [{
            "name": "Bet365",
            "bets": [
                {"name": "Goals Over/Under", "values": [{"value": "Over 2.5", "odd": "1.70"}]},
                {"name": "Match Winner", "values": [
                    {"value": "Home", "odd": "1.85"},
                    {"value": "Draw", "odd": "3.50"},
                    {"value": "Away", "odd": "4.00"},
                ]},
            ],
        }],
    }]
    odds = parse_odds(raw)
    assert odds is not None
    assert (odds.bookmaker, odds.home, odds.draw, odds.away) == ("Bet365", "1.85", "3.50", "4.00")
    assert parse_odds([]) is None


# ── Bzzoiro ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_live_now_uses_token_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [{"home_team": "Lyon", "away_team": "Nice"}, "junk"]})

    client = BzzoiroClient(_http("bzzoiro", handler), api_key="live-token")
    await client.start()
    try:
        records = await client.live_now()
    finally:
        await client.close()

    assert records == [{"home_team": "Lyon", "away_team": "Nice"}]
    assert seen[0].headers["Authorization"] == "Token live-token"
    assert seen[0].url.path == "/live/"


def test_unconfigured_secondary() -> None:
    client = BzzoiroClient(_http("bzzoiro", lambda request: httpx.Response(200)), api_key="")
    assert not client.configured
