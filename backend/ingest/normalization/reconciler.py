"""
Live reconciliation: merges secondary live-feed records into cached fixtures.

The two feeds share no identifiers, so records are joined on team names
through a pluggable TeamNameMatcher, then the feed's free-text status token
is mapped onto the canonical status set.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ingest.normalization.matching import EXACT_SCORE, ContainmentMatcher, TeamNameMatcher
from shared.models.domain import Fixture, LiveUpdate
from shared.models.enums import FixtureStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import LIVE_RECONCILE_UPDATES

logger = get_logger(__name__)

MATCH_THRESHOLD = 80
SECONDARY_SOURCE = "bzzoiro"
HALF_LENGTH_MIN = 45

# Tokens that only say "in play"; resolved by elapsed minutes.
AMBIGUOUS_IN_PLAY_TOKENS: frozenset[str] = frozenset({"inprogress", "in progress", "in_progress", "live"})

SECONDARY_STATUS_TO_CANONICAL: dict[str, FixtureStatus] = {
    "1st_half": FixtureStatus.FIRST_HALF,
    "1st half": FixtureStatus.FIRST_HALF,
    "1h": FixtureStatus.FIRST_HALF,
    "2nd_half": FixtureStatus.SECOND_HALF,
    "2nd half": FixtureStatus.SECOND_HALF,
    "2h": FixtureStatus.SECOND_HALF,
    "halftime": FixtureStatus.HALF_TIME,
    "half time": FixtureStatus.HALF_TIME,
    "half_time": FixtureStatus.HALF_TIME,
    "ht": FixtureStatus.HALF_TIME,
    "finished": FixtureStatus.FULL_TIME,
    "ft": FixtureStatus.FULL_TIME,
    "ended": FixtureStatus.FULL_TIME,
    "notstarted": FixtureStatus.NOT_STARTED,
    "not_started": FixtureStatus.NOT_STARTED,
    "not started": FixtureStatus.NOT_STARTED,
    "ns": FixtureStatus.NOT_STARTED,
    "scheduled": FixtureStatus.NOT_STARTED,
    "cancelled": FixtureStatus.CANCELLED,
    "canceled": FixtureStatus.CANCELLED,
    "canc": FixtureStatus.CANCELLED,
    "postponed": FixtureStatus.POSTPONED,
    "pst": FixtureStatus.POSTPONED,
    "suspended": FixtureStatus.SUSPENDED,
    "susp": FixtureStatus.SUSPENDED,
    "extra_time": FixtureStatus.EXTRA_TIME,
    "extratime": FixtureStatus.EXTRA_TIME,
    "et": FixtureStatus.EXTRA_TIME,
    "penalties": FixtureStatus.PENALTIES,
    "penalty": FixtureStatus.PENALTIES,
    "p": FixtureStatus.PENALTIES,
    "after_extra_time": FixtureStatus.AFTER_EXTRA_TIME,
    "aet": FixtureStatus.AFTER_EXTRA_TIME,
    "after_penalties": FixtureStatus.AFTER_PENALTIES,
    "pen": FixtureStatus.AFTER_PENALTIES,
}


def map_status(token: Optional[str], elapsed: Optional[int], prior: str) -> str:
    """Canonical short code for a feed status token; unknown tokens keep ``prior``."""
    key = (token or "").strip().lower()
    if key in AMBIGUOUS_IN_PLAY_TOKENS:
        in_first_half = (elapsed or 0) <= HALF_LENGTH_MIN
        return (FixtureStatus.FIRST_HALF if in_first_half else FixtureStatus.SECOND_HALF).value
    mapped = SECONDARY_STATUS_TO_CANONICAL.get(key)
    return mapped.value if mapped is not None else prior


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _first_present(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _first_truthy(record: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key):
            return record[key]
    return None


def _team_name(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("name") or "")
    return str(value or "")


def extract_live_update(record: dict[str, Any]) -> LiveUpdate:
    """Pull score, status and minute out of a feed record's provider-specific keys."""
    return LiveUpdate(
        home_score=_as_int(_first_present(record, "home_score", "score_home")),
        away_score=_as_int(_first_present(record, "away_score", "score_away")),
        status=_first_truthy(record, "status", "match_status"),
        elapsed=_as_int(_first_truthy(record, "current_minute", "elapsed", "minute")),
        source_id=record.get("id"),
    )


def apply_live_update(fixture: Fixture, update: LiveUpdate) -> Fixture:
    """Merge one update; identities and league metadata are never touched."""
    elapsed = update.elapsed or fixture.status.elapsed
    status = fixture.status.model_copy(update={
        "short": map_status(update.status, elapsed, fixture.status.short),
        "elapsed": elapsed,
    })
    goals = fixture.goals.model_copy(update={
        "home": update.home_score if update.home_score is not None else fixture.goals.home,
        "away": update.away_score if update.away_score is not None else fixture.goals.away,
    })
    return fixture.model_copy(update={
        "status": status,
        "goals": goals,
        "live_source": SECONDARY_SOURCE,
    })


@dataclass
class ReconcileResult:
    fixtures: list[Fixture]
    updated: dict[int, LiveUpdate] = field(default_factory=dict)


class LiveReconciler:
    def __init__(self, matcher: TeamNameMatcher | None = None, threshold: int = MATCH_THRESHOLD) -> None:
        self._matcher = matcher or ContainmentMatcher()
        self._threshold = threshold

    def match(self, records: list[dict[str, Any]], fixtures: list[Fixture]) -> dict[int, LiveUpdate]:
        """Best fixture per record, kept only when it scores at or above the threshold."""
        updates: dict[int, LiveUpdate] = {}
        for record in records:
            home = _team_name(record.get("home_team"))
            away = _team_name(record.get("away_team"))
            best: Optional[Fixture] = None
            best_score = 0
            for fixture in fixtures:
                if self._matcher.is_exact(home, away, fixture.home.name, fixture.away.name):
                    best, best_score = fixture, EXACT_SCORE
                    break
                score = self._matcher.score(home, away, fixture.home.name, fixture.away.name)
                if score > best_score:
                    best, best_score = fixture, score
            if best is None or best_score < self._threshold:
                logger.debug("live_record_unmatched", home=home, away=away, best_score=best_score)
                continue
            updates[best.id] = extract_live_update(record)
        return updates

    def reconcile(self, fixtures: list[Fixture], records: list[dict[str, Any]]) -> ReconcileResult:
        updates = self.match(records, fixtures)
        merged = [
            apply_live_update(f, updates[f.id]) if f.id in updates else f
            for f in fixtures
        ]
        if updates:
            LIVE_RECONCILE_UPDATES.inc(len(updates))
        logger.info("live_reconciled", records=len(records), fixtures=len(fixtures), updated=len(updates))
        return ReconcileResult(fixtures=merged, updated=updates)
