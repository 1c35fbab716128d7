"""
Wiring for the sync engine: builds every collaborator from Settings and
owns their connection lifecycle.
"""
from __future__ import annotations

from ingest.normalization.reconciler import LiveReconciler
from ingest.providers.api_football import ApiFootballClient
from ingest.providers.bzzoiro import BzzoiroClient
from shared.config import Settings
from shared.store import CacheStore, build_cache_store
from shared.utils.logging import get_logger
from sync.analysis import AnalysisOrchestrator
from sync.documents import DocumentRepository
from sync.fixtures import FixtureSyncOrchestrator
from sync.keys import KeyRotator
from sync.quota import QuotaTracker
from sync.stats import StatsResolver

logger = get_logger(__name__)


class SyncRuntime:
    def __init__(self, settings: Settings, store: CacheStore | None = None) -> None:
        self.settings = settings
        self.store = store or build_cache_store(settings)
        self.documents = DocumentRepository(self.store)
        self.tracker = QuotaTracker(self.store, settings.key_count, settings.daily_call_limit)
        self.rotator = KeyRotator(settings.primary_api_keys, self.tracker)
        self.primary = ApiFootballClient.from_settings(settings, self.tracker)
        self.secondary = BzzoiroClient.from_settings(settings)
        self.fixtures = FixtureSyncOrchestrator(
            documents=self.documents,
            tracker=self.tracker,
            rotator=self.rotator,
            primary=self.primary,
            reconciler=LiveReconciler(),
            settings=settings,
            secondary=self.secondary,
        )
        self.analysis = AnalysisOrchestrator(
            documents=self.documents,
            tracker=self.tracker,
            rotator=self.rotator,
            primary=self.primary,
            resolver=StatsResolver(self.primary, self.rotator),
            settings=settings,
        )

    async def start(self) -> None:
        await self.store.connect()
        await self.primary.start()
        await self.secondary.start()
        logger.info(
            "sync_runtime_started",
            backend=self.settings.cache_backend.value,
            credentials=self.settings.key_count,
            secondary=self.secondary.configured,
        )

    async def close(self) -> None:
        await self.secondary.close()
        await self.primary.close()
        await self.store.close()
        logger.info("sync_runtime_stopped")
