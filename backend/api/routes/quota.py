"""
Quota REST endpoint.

GET /v1/quota  today's aggregate primary-provider budget plus per-credential usage
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from sync.quota import QuotaTracker

from api.dependencies import get_quota_tracker

router = APIRouter(prefix="/v1", tags=["quota"])


@router.get("/quota")
async def get_quota(tracker: QuotaTracker = Depends(get_quota_tracker)) -> dict[str, Any]:
    quota = await tracker.aggregate_quota()
    credentials = await tracker.per_credential()
    return {
        **quota.model_dump(mode="json"),
        "credentials": [c.model_dump(mode="json") for c in credentials],
    }
