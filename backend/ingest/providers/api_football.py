"""
API-Football (v3) connector: the authoritative, quota-metered provider.

Every request is made on behalf of one credential and, when it succeeds,
is recorded against that credential's daily quota exactly once.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from ingest.providers.base import BaseProvider, ProviderLogicalError, TransportError
from shared.config import Settings
from shared.models.domain import (
    Fixture,
    FixtureStatusInfo,
    InjuryRecord,
    LeagueRef,
    OddsSummary,
    Score,
    TeamRef,
    TeamStatistics,
)
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from sync.keys import Credential
from sync.quota import QuotaTracker

logger = get_logger(__name__)

PROVIDER_NAME = "api-football"
AUTH_HEADER = "x-apisports-key"
MATCH_WINNER_BET = "Match Winner"


def _total(node: Any, *path: str) -> int:
    """Walk nested dicts; missing or null values count as zero."""
    for key in path:
        if not isinstance(node, dict):
            return 0
        node = node.get(key)
    return int(node) if isinstance(node, (int, float)) else 0


def parse_fixture(raw: dict[str, Any]) -> Fixture:
    fixture = raw.get("fixture") or {}
    status = fixture.get("status") or {}
    league = raw.get("league") or {}
    teams = raw.get("teams") or {}
    goals = raw.get("goals") or {}
    return Fixture(
        id=fixture["id"],
        date=fixture["date"],
        timestamp=fixture.get("timestamp"),
        status=FixtureStatusInfo(
            short=status.get("short") or "NS",
            long=status.get("long"),
            elapsed=status.get("elapsed"),
        ),
        home=TeamRef(**teams["home"]),
        away=TeamRef(**teams["away"]),
        goals=Score(home=goals.get("home"), away=goals.get("away")),
        league=LeagueRef(
            id=league["id"],
            name=league.get("name", ""),
            country=league.get("country") or "",
            season=league.get("season"),
            logo=league.get("logo"),
        ),
    )


def parse_fixtures(raw_items: list[dict[str, Any]]) -> list[Fixture]:
    fixtures: list[Fixture] = []
    for raw in raw_items:
        try:
            fixtures.append(parse_fixture(raw))
        except (KeyError, TypeError, ValidationError) as exc:
            logger.warning("fixture_parse_skipped", error=str(exc))
    return fixtures


def parse_team_statistics(raw: dict[str, Any], team_id: int, league_id: int, season: int) -> Optional[TeamStatistics]:
    form = raw.get("form")
    if not form:
        return None
    return TeamStatistics(
        team_id=team_id,
        season=season,
        league_id=league_id,
        form=form,
        played=_total(raw, "fixtures", "played", "total"),
        wins=_total(raw, "fixtures", "wins", "total"),
        draws=_total(raw, "fixtures", "draws", "total"),
        losses=_total(raw, "fixtures", "loses", "total"),
        goals_for=_total(raw, "goals", "for", "total", "total"),
        goals_against=_total(raw, "goals", "against", "total", "total"),
        rank=raw.get("rank"),
        penalty_missed=_total(raw, "penalty", "missed", "total"),
    )


def parse_odds(raw_items: list[dict[str, Any]]) -> Optional[OddsSummary]:
    """Match Winner prices from the first bookmaker that quotes them."""
    for item in raw_items:
        for bookmaker in item.get("bookmakers") or []:
            for bet in bookmaker.get("bets") or []:
                if bet.get("name") != MATCH_WINNER_BET:
                    continue
                prices = {v.get("value"): v.get("odd") for v in bet.get("values") or []}
                return OddsSummary(
                    bookmaker=bookmaker.get("name", ""),
                    home=prices.get("Home"),
                    draw=prices.get("Draw"),
                    away=prices.get("Away"),
                )
    return None


def parse_injuries(raw_items: list[dict[str, Any]]) -> list[InjuryRecord]:
    injuries: list[InjuryRecord] = []
    for item in raw_items:
        player = item.get("player") or {}
        team = item.get("team") or {}
        if team.get("id") is None or not player.get("name"):
            continue
        injuries.append(InjuryRecord(
            team_id=team["id"],
            player=player["name"],
            type=player.get("type"),
            reason=player.get("reason"),
        ))
    return injuries


class ApiFootballClient(BaseProvider):
    def __init__(self, http_client: ProviderHTTPClient, tracker: QuotaTracker, head_to_head_last: int = 10) -> None:
        super().__init__(http_client)
        self._tracker = tracker
        self._h2h_last = head_to_head_last

    @classmethod
    def from_settings(cls, settings: Settings, tracker: QuotaTracker) -> "ApiFootballClient":
        http = ProviderHTTPClient(
            PROVIDER_NAME,
            settings.primary_base_url,
            timeout_s=settings.provider_request_timeout_s,
            max_retries=1,
        )
        return cls(http, tracker, head_to_head_last=settings.head_to_head_last)

    async def _request(
        self, path: str, params: dict[str, Any], credential: Credential, endpoint: str
    ) -> Any:
        data = await self._get_json(
            path, params=params, headers={AUTH_HEADER: credential.key}, endpoint=endpoint
        )
        if not isinstance(data, dict):
            raise TransportError(self.name, f"unexpected payload on {path}")
        errors = data.get("errors")
        if errors:
            logger.error("provider_logical_error", provider=self.name, path=path, errors=errors)
            raise ProviderLogicalError(self.name, errors)
        await self._tracker.record_call(credential.index)
        return data.get("response")

    async def fixtures_by_date(self, day: str, credential: Credential) -> list[Fixture]:
        response = await self._request("/fixtures", {"date": day}, credential, "fixtures")
        return parse_fixtures(response or [])

    async def team_statistics(
        self, team_id: int, league_id: int, season: int, credential: Credential
    ) -> Optional[TeamStatistics]:
        """Season statistics, or None when the league/season carries no form for the team."""
        response = await self._request(
            "/teams/statistics",
            {"team": team_id, "league": league_id, "season": season},
            credential,
            "team_statistics",
        )
        if not isinstance(response, dict):
            return None
        return parse_team_statistics(response, team_id, league_id, season)

    async def head_to_head(self, home_id: int, away_id: int, credential: Credential) -> list[Fixture]:
        response = await self._request(
            "/fixtures/headtohead",
            {"h2h": f"{home_id}-{away_id}", "last": self._h2h_last},
            credential,
            "head_to_head",
        )
        return parse_fixtures(response or [])

    async def odds(self, fixture_id: int, credential: Credential) -> Optional[OddsSummary]:
        response = await self._request("/odds", {"fixture": fixture_id}, credential, "odds")
        return parse_odds(response or [])

    async def injuries(self, fixture_id: int, credential: Credential) -> list[InjuryRecord]:
        response = await self._request("/injuries", {"fixture": fixture_id}, credential, "injuries")
        return parse_injuries(response or [])
