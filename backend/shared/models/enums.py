"""Domain enumerations for the Matchday sync engine."""
from __future__ import annotations

from enum import Enum


class FixtureStatus(str, Enum):
    """Canonical match phase, independent of any upstream vocabulary."""

    NOT_STARTED = "NS"
    FIRST_HALF = "1H"
    HALF_TIME = "HT"
    SECOND_HALF = "2H"
    EXTRA_TIME = "ET"
    PENALTIES = "P"
    FULL_TIME = "FT"
    AFTER_EXTRA_TIME = "AET"
    AFTER_PENALTIES = "PEN"
    CANCELLED = "CANC"
    POSTPONED = "PST"
    SUSPENDED = "SUSP"


# Short codes that make a snapshot "live-sensitive". BT and LIVE are primary
# provider codes outside the canonical set; fixtures may carry them verbatim.
IN_PROGRESS_CODES: frozenset[str] = frozenset({"1H", "HT", "2H", "ET", "BT", "P", "LIVE"})


class SyncSource(str, Enum):
    CACHE = "cache"
    SECONDARY_FEED = "secondary-feed"
    PRIMARY_PROVIDER = "primary-provider"
    EMPTY = "empty"


class FormComparison(str, Enum):
    HOME = "home"
    AWAY = "away"
    EQUAL = "equal"


class DocumentKind(str, Enum):
    """Cache store document kinds."""

    MATCH_DAY = "matchDay"
    ANALYSIS = "analysis"
    API_QUOTA = "apiQuota"


class Gender(str, Enum):
    MEN = "M"
    WOMEN = "W"
