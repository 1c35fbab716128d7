"""
Team-name matching between feeds that share no identifiers.
"""
from __future__ import annotations

import abc
import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

EXACT_SCORE = 100
CONTAINMENT_SCORE = 50


def normalize_team_name(name: Optional[str]) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", (name or "").lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub("", stripped)).strip()


class TeamNameMatcher(abc.ABC):
    """Scores how likely two (home, away) name pairs describe the same match, 0..100."""

    @abc.abstractmethod
    def score(self, home_a: str, away_a: str, home_b: str, away_b: str) -> int:
        ...

    def is_exact(self, home_a: str, away_a: str, home_b: str, away_b: str) -> bool:
        """Identical normalized names on both sides; stops the candidate scan."""
        ha, aa = normalize_team_name(home_a), normalize_team_name(away_a)
        return bool(ha and aa) and ha == normalize_team_name(home_b) and aa == normalize_team_name(away_b)


def _contains_either(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return a in b or b in a


class ContainmentMatcher(TeamNameMatcher):
    """
    100 when both normalized names are equal; otherwise 50 for each side
    where one name contains the other. Short or generic names can misfire.
    """

    def score(self, home_a: str, away_a: str, home_b: str, away_b: str) -> int:
        if self.is_exact(home_a, away_a, home_b, away_b):
            return EXACT_SCORE
        ha, aa = normalize_team_name(home_a), normalize_team_name(away_a)
        hb, ab = normalize_team_name(home_b), normalize_team_name(away_b)
        total = 0
        if _contains_either(ha, hb):
            total += CONTAINMENT_SCORE
        if _contains_either(aa, ab):
            total += CONTAINMENT_SCORE
        return total
