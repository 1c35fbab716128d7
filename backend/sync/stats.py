"""
Team statistics resolution across a fallback chain of leagues.

Cup and supercup competitions carry no standalone statistics, so a team's
numbers are looked up in its domestic leagues before the match's own league.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ingest.providers.api_football import ApiFootballClient
from ingest.providers.base import ProviderError
from shared.leagues import LEAGUES, country_league_ids, first_division_id
from shared.models.domain import TeamStatistics
from shared.utils.logging import get_logger
from sync.keys import KeyRotator, NoProviderAvailable

logger = get_logger(__name__)


@dataclass
class StatsResolution:
    stats: Optional[TeamStatistics]
    calls: int = 0
    candidates: tuple[int, ...] = ()


def _country_for(league_id: int, fallback_country: str) -> str:
    meta = LEAGUES.get(league_id)
    return meta.country if meta is not None else fallback_country


def candidate_leagues(league_id: int, country: str = "") -> list[int]:
    """Own league if division-tagged, the country's first and second divisions, own league last."""
    own = LEAGUES.get(league_id)
    candidates: list[int] = []
    if own is not None and own.is_domestic_league:
        candidates.append(league_id)
    for lid in country_league_ids(_country_for(league_id, country)):
        if lid not in candidates:
            candidates.append(lid)
    if league_id not in candidates:
        candidates.append(league_id)
    return candidates


def optimized_league(league_id: int, country: str = "") -> int:
    """The single best candidate: own league if division-tagged, else the first division."""
    own = LEAGUES.get(league_id)
    if own is not None and own.is_domestic_league:
        return league_id
    return first_division_id(_country_for(league_id, country)) or league_id


class StatsResolver:
    def __init__(self, client: ApiFootballClient, rotator: KeyRotator) -> None:
        self._client = client
        self._rotator = rotator

    async def resolve(
        self,
        team_id: int,
        league_id: int,
        season: int,
        country: str = "",
        optimized: bool = False,
    ) -> StatsResolution:
        """
        Walk the candidate leagues until one returns a non-empty form string.
        ``calls`` counts the quota-charged (successful) upstream calls.

        In optimized mode only one upstream call is ever made. Provider errors
        on one candidate move on to the next; running out of quota stops.
        """
        if optimized:
            candidates = [optimized_league(league_id, country)]
        else:
            candidates = candidate_leagues(league_id, country)

        calls = 0
        for candidate in candidates:
            try:
                stats = await self._rotator.call(
                    lambda cred, lid=candidate: self._client.team_statistics(team_id, lid, season, cred)
                )
            except NoProviderAvailable:
                logger.warning("team_stats_no_quota", team_id=team_id, league_id=candidate)
                break
            except ProviderError as exc:
                logger.warning("team_stats_failed", team_id=team_id, league_id=candidate, error=str(exc))
                continue
            calls += 1
            if stats is not None and stats.form:
                logger.debug("team_stats_resolved", team_id=team_id, league_id=candidate, calls=calls)
                return StatsResolution(stats=stats, calls=calls, candidates=tuple(candidates))

        logger.info("team_stats_absent", team_id=team_id, season=season, candidates=candidates)
        return StatsResolution(stats=None, calls=calls, candidates=tuple(candidates))
