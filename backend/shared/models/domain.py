"""
Pydantic v2 domain models for the Matchday sync engine.
These are the canonical internal/wire representations stored in the cache.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.enums import FormComparison, Gender, IN_PROGRESS_CODES, SyncSource


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Reference entities ──────────────────────────────────────────────────
class TeamRef(DomainModel):
    id: int
    name: str
    logo: Optional[str] = None


class LeagueRef(DomainModel):
    id: int
    name: str
    country: str = ""
    season: Optional[int] = None
    logo: Optional[str] = None


class LeagueMeta(DomainModel):
    """Catalogue tags for a league: country, display name, division tier, gender."""
    country: str
    name: str
    division: int = Field(0, ge=0, le=2, description="1 first, 2 second, 0 cup/other")
    gender: Gender = Gender.MEN

    @property
    def is_domestic_league(self) -> bool:
        return self.division in (1, 2)


# ── Fixtures ────────────────────────────────────────────────────────────
class FixtureStatusInfo(DomainModel):
    short: str = "NS"
    long: Optional[str] = None
    elapsed: Optional[int] = None


class Score(DomainModel):
    home: Optional[int] = None
    away: Optional[int] = None


class Fixture(DomainModel):
    id: int
    date: datetime
    timestamp: Optional[int] = None
    status: FixtureStatusInfo = Field(default_factory=FixtureStatusInfo)
    home: TeamRef
    away: TeamRef
    goals: Score = Field(default_factory=Score)
    league: LeagueRef
    league_meta: Optional[LeagueMeta] = None
    live_source: Optional[str] = None

    @property
    def is_in_progress(self) -> bool:
        return self.status.short in IN_PROGRESS_CODES


class FixtureDaySnapshot(DomainModel):
    """All tracked fixtures for one calendar date. Keyed by fixture id."""
    date: str
    matches: list[Fixture] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utc_now)
    match_count: int = 0

    @model_validator(mode="after")
    def dedupe_matches(self) -> "FixtureDaySnapshot":
        seen: dict[int, Fixture] = {}
        for fixture in self.matches:
            seen[fixture.id] = fixture
        if len(seen) != len(self.matches):
            self.matches = list(seen.values())
        self.match_count = len(self.matches)
        return self

    @property
    def has_live(self) -> bool:
        return any(f.is_in_progress for f in self.matches)

    def age_s(self, now: datetime | None = None) -> float:
        return ((now or utc_now()) - self.fetched_at).total_seconds()


class LiveUpdate(DomainModel):
    """One secondary-feed record matched to a fixture. Transient."""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: Optional[str] = None
    elapsed: Optional[int] = None
    source_id: Optional[Union[int, str]] = None


# ── Statistics and analysis ─────────────────────────────────────────────
class TeamStatistics(DomainModel):
    team_id: int
    season: int
    league_id: int
    form: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    rank: Optional[int] = None
    penalty_missed: int = 0


class OddsSummary(DomainModel):
    bookmaker: str
    home: Optional[str] = None
    draw: Optional[str] = None
    away: Optional[str] = None


class InjuryRecord(DomainModel):
    team_id: int
    player: str
    type: Optional[str] = None
    reason: Optional[str] = None


class AnalysisRecord(DomainModel):
    fixture_id: int
    date: Optional[str] = None
    home_stats: Optional[TeamStatistics] = None
    away_stats: Optional[TeamStatistics] = None
    head_to_head: list[Fixture] = Field(default_factory=list)
    odds: Optional[OddsSummary] = None
    injuries: list[InjuryRecord] = Field(default_factory=list)
    better_form: FormComparison = FormComparison.EQUAL
    fetched_at: datetime = Field(default_factory=utc_now)

    @property
    def is_complete(self) -> bool:
        """Both sides carry a form string; anything less is refetched, never patched."""
        return bool(
            self.home_stats and self.home_stats.form
            and self.away_stats and self.away_stats.form
        )


# ── Quota ───────────────────────────────────────────────────────────────
class CredentialQuota(DomainModel):
    index: int
    used: int
    remaining: int
    limit: int


class Quota(DomainModel):
    used: int
    remaining: int
    limit: int
    date: str
    key_count: int


# ── Orchestrator results ────────────────────────────────────────────────
class SyncResult(DomainModel):
    date: str
    matches: list[Fixture] = Field(default_factory=list)
    source: SyncSource
    api_calls: int = 0
    quota: Optional[Quota] = None
    live_updated: int = 0
    updated_at: Optional[datetime] = None
    cache_age_s: Optional[int] = None
    next_refresh_in: Optional[int] = None


class AnalysisRequest(DomainModel):
    fixture_id: int
    home_id: int
    away_id: int
    league_id: int
    season: Optional[int] = None
    date: Optional[str] = None


class AnalysisOutcome(DomainModel):
    analysis: Optional[AnalysisRecord] = None
    from_cache: bool = False
    api_calls: int = 0
    quota: Optional[Quota] = None
    quota_exceeded: bool = False


class BatchItemError(DomainModel):
    error: str
    skipped: bool = False


class BatchAnalysisResult(DomainModel):
    results: dict[int, Union[AnalysisRecord, BatchItemError]] = Field(default_factory=dict)
    api_calls: int = 0
    quota: Optional[Quota] = None
    analyzed: int = 0
    skipped: int = 0
