"""
Per-fixture analysis and quota-admitted batch analysis.

Two concurrency tiers: inside one fixture the five enrichment calls run
concurrently; across fixtures a batch runs strictly one after another, in
input order, to bound the burst rate against the primary provider.
"""
from __future__ import annotations

import asyncio
from datetime import date as date_type
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ingest.providers.api_football import ApiFootballClient
from shared.config import Settings
from shared.leagues import LEAGUES, season_for_date
from shared.models.domain import (
    AnalysisOutcome,
    AnalysisRecord,
    AnalysisRequest,
    BatchAnalysisResult,
    BatchItemError,
    Quota,
    utc_now,
)
from shared.models.enums import FormComparison
from shared.store import CacheStoreError
from shared.utils.logging import get_logger
from shared.utils.metrics import ANALYSIS_RESULTS
from sync.documents import DocumentRepository
from sync.fixtures import SyncUnavailableError
from sync.keys import Credential, KeyRotator, NoProviderAvailable
from sync.quota import QuotaTracker
from sync.stats import StatsResolution, StatsResolver

logger = get_logger(__name__)

T = TypeVar("T")

FORM_POINTS = {"W": 3, "D": 1, "L": 0}
QUOTA_EXCEEDED_MESSAGE = "daily quota exhausted, try again tomorrow"


def form_points(form: Optional[str]) -> int:
    return sum(FORM_POINTS.get(ch, 0) for ch in (form or "").upper())


def compare_form(home_form: Optional[str], away_form: Optional[str]) -> FormComparison:
    home, away = form_points(home_form), form_points(away_form)
    if home > away:
        return FormComparison.HOME
    if away > home:
        return FormComparison.AWAY
    return FormComparison.EQUAL


def _season(request: AnalysisRequest) -> int:
    if request.season:
        return request.season
    if request.date:
        try:
            return season_for_date(date_type.fromisoformat(request.date[:10]))
        except ValueError:
            pass
    return season_for_date(utc_now().date())


class AnalysisOrchestrator:
    def __init__(
        self,
        documents: DocumentRepository,
        tracker: QuotaTracker,
        rotator: KeyRotator,
        primary: ApiFootballClient,
        resolver: StatsResolver,
        settings: Settings,
    ) -> None:
        self._documents = documents
        self._tracker = tracker
        self._rotator = rotator
        self._primary = primary
        self._resolver = resolver
        self._calls_per_analysis = settings.calls_per_analysis
        self._batch_optimized = settings.batch_optimized_stats

    async def _quota(self) -> Quota:
        try:
            return await self._tracker.aggregate_quota()
        except CacheStoreError as exc:
            raise SyncUnavailableError(str(exc)) from exc

    async def analyze(self, request: AnalysisRequest, optimized: bool = False) -> AnalysisOutcome:
        cached = await self._documents.get_analysis(request.fixture_id)
        if cached is not None and cached.is_complete:
            ANALYSIS_RESULTS.labels(outcome="cache").inc()
            return AnalysisOutcome(analysis=cached, from_cache=True, quota=await self._quota())

        quota = await self._quota()
        if quota.remaining < self._calls_per_analysis:
            ANALYSIS_RESULTS.labels(outcome="quota_exceeded").inc()
            logger.warning(
                "analysis_quota_exceeded",
                fixture_id=request.fixture_id,
                remaining=quota.remaining,
                required=self._calls_per_analysis,
            )
            return AnalysisOutcome(quota=quota, quota_exceeded=True)

        season = _season(request)
        meta = LEAGUES.get(request.league_id)
        country = meta.country if meta is not None else ""

        home, away, h2h, odds, injuries = await asyncio.gather(
            self._resolve_stats(request.home_id, request.league_id, season, country, optimized),
            self._resolve_stats(request.away_id, request.league_id, season, country, optimized),
            self._enrich(
                "head_to_head",
                lambda cred: self._primary.head_to_head(request.home_id, request.away_id, cred),
                [],
            ),
            self._enrich("odds", lambda cred: self._primary.odds(request.fixture_id, cred), None),
            self._enrich("injuries", lambda cred: self._primary.injuries(request.fixture_id, cred), []),
        )

        record = AnalysisRecord(
            fixture_id=request.fixture_id,
            date=request.date,
            home_stats=home.stats,
            away_stats=away.stats,
            head_to_head=h2h[0],
            odds=odds[0],
            injuries=injuries[0],
            better_form=compare_form(
                home.stats.form if home.stats else None,
                away.stats.form if away.stats else None,
            ),
        )
        api_calls = home.calls + away.calls + h2h[1] + odds[1] + injuries[1]
        await self._documents.save_analysis(record)

        outcome = "complete" if record.is_complete else "partial"
        ANALYSIS_RESULTS.labels(outcome=outcome).inc()
        logger.info(
            "fixture_analyzed",
            fixture_id=request.fixture_id,
            outcome=outcome,
            api_calls=api_calls,
            better_form=record.better_form.value,
        )
        return AnalysisOutcome(analysis=record, api_calls=api_calls, quota=await self._quota())

    async def _resolve_stats(
        self, team_id: int, league_id: int, season: int, country: str, optimized: bool
    ) -> StatsResolution:
        try:
            return await self._resolver.resolve(team_id, league_id, season, country, optimized=optimized)
        except Exception as exc:
            logger.error("team_stats_error", team_id=team_id, error=str(exc), exc_info=True)
            return StatsResolution(stats=None)

    async def _enrich(
        self, name: str, request_fn: Callable[[Credential], Awaitable[T]], fallback: Any
    ) -> tuple[Any, int]:
        """Run one enrichment call; any failure degrades to ``fallback``. Returns (value, calls)."""
        try:
            return await self._rotator.call(request_fn), 1
        except NoProviderAvailable:
            logger.warning("enrichment_no_quota", enrichment=name)
        except Exception as exc:
            logger.warning("enrichment_failed", enrichment=name, error=str(exc))
        return fallback, 0

    async def analyze_batch(
        self, requests: list[AnalysisRequest], optimized: Optional[bool] = None
    ) -> BatchAnalysisResult:
        """
        Analyze fixtures sequentially, admitting only as many as today's quota affords.

        ``remaining // calls_per_analysis`` positions are admitted up front; the
        rest are marked skipped without an upstream call. A quota-exceeded
        answer mid-batch stops processing and skips everything after it.
        Repeated fixture ids are dropped; the first occurrence keeps its position.
        """
        seen: set[int] = set()
        unique: list[AnalysisRequest] = []
        for request in requests:
            if request.fixture_id not in seen:
                seen.add(request.fixture_id)
                unique.append(request)
        if len(unique) < len(requests):
            logger.info("batch_duplicates_dropped", requested=len(requests), unique=len(unique))
            requests = unique
        use_optimized = self._batch_optimized if optimized is None else optimized
        quota = await self._quota()
        max_analyzable = quota.remaining // self._calls_per_analysis

        result = BatchAnalysisResult()
        halted = False
        for position, request in enumerate(requests):
            if halted or position >= max_analyzable:
                result.results[request.fixture_id] = BatchItemError(error=QUOTA_EXCEEDED_MESSAGE, skipped=True)
                result.skipped += 1
                continue
            try:
                outcome = await self.analyze(request, optimized=use_optimized)
            except Exception as exc:
                logger.error("batch_item_failed", fixture_id=request.fixture_id, error=str(exc))
                result.results[request.fixture_id] = BatchItemError(error=str(exc))
                continue
            if outcome.quota_exceeded:
                logger.warning("batch_halted_quota", fixture_id=request.fixture_id, position=position)
                halted = True
                result.results[request.fixture_id] = BatchItemError(error=QUOTA_EXCEEDED_MESSAGE, skipped=True)
                result.skipped += 1
                continue
            result.results[request.fixture_id] = outcome.analysis
            result.api_calls += outcome.api_calls
            result.analyzed += 1

        result.quota = await self._quota()
        logger.info(
            "batch_analyzed",
            requested=len(requests),
            max_analyzable=max_analyzable,
            analyzed=result.analyzed,
            skipped=result.skipped,
            api_calls=result.api_calls,
        )
        return result

    async def history_for_date(self, day: str) -> list[AnalysisRecord]:
        try:
            return await self._documents.analyses_for_date(day)
        except CacheStoreError as exc:
            raise SyncUnavailableError(str(exc)) from exc

    async def analyzed_dates(self) -> list[str]:
        try:
            return await self._documents.analyzed_dates()
        except CacheStoreError as exc:
            raise SyncUnavailableError(str(exc)) from exc
