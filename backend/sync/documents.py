"""
Typed access to the documents the sync engine keeps in the cache store.
"""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from shared.models.domain import AnalysisRecord, FixtureDaySnapshot
from shared.models.enums import DocumentKind
from shared.store import CacheStore, CacheStoreError
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DocumentRepository:
    def __init__(self, store: CacheStore) -> None:
        self._store = store

    @property
    def store(self) -> CacheStore:
        return self._store

    async def get_snapshot(self, day: str) -> Optional[FixtureDaySnapshot]:
        """Snapshot for ``day``; unreadable documents count as missing. Raises CacheStoreError."""
        doc = await self._store.get(DocumentKind.MATCH_DAY.value, day)
        if doc is None:
            return None
        try:
            return FixtureDaySnapshot.model_validate(doc)
        except ValidationError as exc:
            logger.warning("snapshot_invalid", date=day, error=str(exc))
            return None

    async def save_snapshot(self, snapshot: FixtureDaySnapshot) -> bool:
        """
        Replace the snapshot for its date.

        An empty snapshot is never written: an empty upstream answer must not
        erase good data. Store failures are logged and reported as False.
        """
        if not snapshot.matches:
            logger.info("snapshot_empty_not_saved", date=snapshot.date)
            return False
        try:
            return await self._store.put(
                DocumentKind.MATCH_DAY.value, snapshot.date, snapshot.model_dump(mode="json")
            )
        except CacheStoreError as exc:
            logger.error("snapshot_save_failed", date=snapshot.date, error=str(exc))
            return False

    async def get_analysis(self, fixture_id: int) -> Optional[AnalysisRecord]:
        try:
            doc = await self._store.get(DocumentKind.ANALYSIS.value, str(fixture_id))
        except CacheStoreError as exc:
            logger.warning("analysis_read_failed", fixture_id=fixture_id, error=str(exc))
            return None
        if doc is None:
            return None
        try:
            return AnalysisRecord.model_validate(doc)
        except ValidationError as exc:
            logger.warning("analysis_invalid", fixture_id=fixture_id, error=str(exc))
            return None

    async def save_analysis(self, record: AnalysisRecord) -> bool:
        try:
            return await self._store.put(
                DocumentKind.ANALYSIS.value, str(record.fixture_id), record.model_dump(mode="json")
            )
        except CacheStoreError as exc:
            logger.error("analysis_save_failed", fixture_id=record.fixture_id, error=str(exc))
            return False

    async def analyses_for_date(self, day: str) -> list[AnalysisRecord]:
        docs = await self._store.query(DocumentKind.ANALYSIS.value, {"date": day})
        records = []
        for doc in docs:
            try:
                records.append(AnalysisRecord.model_validate(doc))
            except ValidationError as exc:
                logger.warning("analysis_invalid", fixture_id=doc.get("fixture_id"), error=str(exc))
        return sorted(records, key=lambda r: r.fixture_id)

    async def analyzed_dates(self) -> list[str]:
        docs = await self._store.query(DocumentKind.ANALYSIS.value)
        dates = {doc["date"] for doc in docs if doc.get("date")}
        return sorted(dates, reverse=True)
