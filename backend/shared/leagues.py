"""
Tracked league catalogue.

Division: 1 first division, 2 second division, 0 cup/supercup/other.
Ids are the primary provider's league ids.
"""
from __future__ import annotations

from datetime import date as date_type
from typing import Optional

from shared.models.domain import LeagueMeta
from shared.models.enums import Gender


def _league(country: str, name: str, division: int, gender: str = "M") -> LeagueMeta:
    return LeagueMeta(country=country, name=name, division=division, gender=Gender(gender))


LEAGUES: dict[int, LeagueMeta] = {
    # Germany
    78: _league("Germany", "Bundesliga", 1),
    79: _league("Germany", "2. Bundesliga", 2),
    81: _league("Germany", "DFB Pokal", 0),
    529: _league("Germany", "DFL Super Cup", 0),
    506: _league("Germany", "Frauen Bundesliga", 1, "W"),
    # Spain
    140: _league("Spain", "La Liga", 1),
    141: _league("Spain", "Segunda División", 2),
    143: _league("Spain", "Copa del Rey", 0),
    556: _league("Spain", "Super Cup", 0),
    898: _league("Spain", "Liga F", 1, "W"),
    # England
    39: _league("England", "Premier League", 1),
    40: _league("England", "Championship", 2),
    45: _league("England", "FA Cup", 0),
    48: _league("England", "League Cup", 0),
    528: _league("England", "Community Shield", 0),
    44: _league("England", "WSL", 1, "W"),
    # Italy
    135: _league("Italy", "Serie A", 1),
    136: _league("Italy", "Serie B", 2),
    137: _league("Italy", "Coppa Italia", 0),
    547: _league("Italy", "Supercoppa", 0),
    723: _league("Italy", "Serie A Femminile", 1, "W"),
    # Colombia
    239: _league("Colombia", "Liga BetPlay", 1),
    240: _league("Colombia", "Torneo BetPlay", 2),
    # Brazil
    71: _league("Brazil", "Série A", 1),
    72: _league("Brazil", "Série B", 2),
    73: _league("Brazil", "Copa do Brasil", 0),
    475: _league("Brazil", "Série A1 Feminino", 1, "W"),
    # France
    61: _league("France", "Ligue 1", 1),
    62: _league("France", "Ligue 2", 2),
    66: _league("France", "Coupe de France", 0),
    526: _league("France", "Trophée des Champions", 0),
    484: _league("France", "D1 Arkema", 1, "W"),
    # Saudi Arabia
    307: _league("Saudi Arabia", "Pro League", 1),
    308: _league("Saudi Arabia", "Division 1", 2),
    320: _league("Saudi Arabia", "King's Cup", 0),
    # Argentina
    128: _league("Argentina", "Liga Profesional", 1),
    129: _league("Argentina", "Primera Nacional", 2),
    130: _league("Argentina", "Copa Argentina", 0),
    # Mexico
    262: _league("Mexico", "Liga MX", 1),
    263: _league("Mexico", "Liga de Expansión", 2),
    749: _league("Mexico", "Liga MX Femenil", 1, "W"),
}

ALL_LEAGUE_IDS: frozenset[int] = frozenset(LEAGUES)


def league_meta(league_id: int, country: str = "", name: str = "") -> LeagueMeta:
    """Catalogue entry for a league, or an untagged cup-tier fallback."""
    meta = LEAGUES.get(league_id)
    if meta is not None:
        return meta
    return LeagueMeta(country=country, name=name, division=0, gender=Gender.MEN)


def country_league_ids(country: str) -> list[int]:
    """Men's first and second division league ids for a country, first division first."""
    ids = [
        league_id
        for league_id, meta in LEAGUES.items()
        if meta.country == country and meta.is_domestic_league and meta.gender == Gender.MEN
    ]
    return sorted(ids, key=lambda lid: LEAGUES[lid].division)


def first_division_id(country: str) -> Optional[int]:
    for league_id in country_league_ids(country):
        if LEAGUES[league_id].division == 1:
            return league_id
    return None


def season_for_date(day: date_type) -> int:
    """European-style season year: fixtures before August belong to the previous season."""
    return day.year if day.month >= 8 else day.year - 1
