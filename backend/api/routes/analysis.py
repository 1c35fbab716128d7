"""
Analysis REST endpoints.

GET  /v1/analyze          analyze one fixture (429 when today's quota cannot cover it)
POST /v1/analyze/batch    analyze an ordered list of fixtures under quota admission
GET  /v1/history          analysed fixtures for a date, or every date with analyses
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from shared.models.domain import AnalysisOutcome, AnalysisRequest, BatchAnalysisResult
from sync.analysis import QUOTA_EXCEEDED_MESSAGE, AnalysisOrchestrator

from api.dependencies import get_analysis, parse_day

router = APIRouter(prefix="/v1", tags=["analysis"])


class BatchAnalysisBody(BaseModel):
    fixtures: list[AnalysisRequest] = Field(default_factory=list)
    optimized: Optional[bool] = None


@router.get("/analyze", response_model=AnalysisOutcome)
async def analyze_fixture(
    fixture_id: int = Query(..., gt=0),
    home_id: int = Query(..., gt=0),
    away_id: int = Query(..., gt=0),
    league_id: int = Query(..., gt=0),
    season: Optional[int] = Query(None),
    date_str: Optional[str] = Query(None, alias="date"),
    analysis: AnalysisOrchestrator = Depends(get_analysis),
) -> Any:
    request = AnalysisRequest(
        fixture_id=fixture_id,
        home_id=home_id,
        away_id=away_id,
        league_id=league_id,
        season=season,
        date=parse_day(date_str) if date_str else None,
    )
    outcome = await analysis.analyze(request)

    if outcome.quota_exceeded:
        return JSONResponse(
            status_code=429,
            content={
                "error": "quota_exceeded",
                "message": QUOTA_EXCEEDED_MESSAGE,
                "quota": outcome.quota.model_dump(mode="json") if outcome.quota else None,
            },
        )
    return outcome


@router.post("/analyze/batch", response_model=BatchAnalysisResult)
async def analyze_batch(
    body: BatchAnalysisBody,
    analysis: AnalysisOrchestrator = Depends(get_analysis),
) -> BatchAnalysisResult:
    return await analysis.analyze_batch(body.fixtures, optimized=body.optimized)


@router.get("/history")
async def get_history(
    date_str: Optional[str] = Query(None, alias="date"),
    analysis: AnalysisOrchestrator = Depends(get_analysis),
) -> dict[str, Any]:
    """Analyses stored for one date, or the list of dates that have any (newest first)."""
    if date_str:
        day = parse_day(date_str)
        records = await analysis.history_for_date(day)
        return {"date": day, "analyses": [r.model_dump(mode="json") for r in records]}
    return {"dates": await analysis.analyzed_dates()}
