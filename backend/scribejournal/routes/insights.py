"""
ScribeJournal Backend — Insight Routes
========================================

What:  Lists the insight types and runs one over the caller's journal.
How:   Uses the session's InsightEngine, so the entry fetch is shared by
       every insight type requested within one insights view. A client
       opening the view passes `refresh=true` to start with a fresh fetch.

Error responses:
    422 no_entries / no_insights   nothing to show (reported, not an empty list)
    503 capability_failure         summarizer unavailable
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from scribejournal.exceptions import NotFoundError
from scribejournal.routes.dependencies import get_upload_session
from scribejournal.schemas.journal import (
    ErrorResponse,
    InsightItemResponse,
    InsightModeResponse,
    InsightResponse,
)
from scribejournal.services.capability_base import INSIGHT_MODES
from scribejournal.services.insight_service import INSIGHT_MODE_INFO
from scribejournal.services.session_service import UploadSession

router = APIRouter(prefix="/api/insights", tags=["Insights"])


@router.get("/modes", response_model=List[InsightModeResponse], summary="Available insight types")
async def list_modes() -> List[InsightModeResponse]:
    return [
        InsightModeResponse(
            id=mode.value,
            title=INSIGHT_MODE_INFO[mode].title,
            description=INSIGHT_MODE_INFO[mode].description,
        )
        for mode in INSIGHT_MODES
    ]


@router.post(
    "/{mode}",
    response_model=InsightResponse,
    responses={
        404: {"description": "Unknown insight type", "model": ErrorResponse},
        422: {"description": "No entries, or no insights produced", "model": ErrorResponse},
        503: {"description": "Summarizer unavailable", "model": ErrorResponse},
    },
    summary="Generate insights",
)
async def generate_insights(
    mode: str,
    refresh: bool = Query(
        default=False,
        description="Re-fetch the journal before analysing (set when an insights view opens)",
    ),
    session: UploadSession = Depends(get_upload_session),
) -> InsightResponse:
    selected = next((m for m in INSIGHT_MODES if m.value == mode), None)
    if selected is None:
        raise NotFoundError(resource="insight type", resource_id=mode)

    if refresh:
        session.insights.invalidate()
    items = await session.insights.generate(selected)
    return InsightResponse(
        mode=selected.value,
        title=INSIGHT_MODE_INFO[selected].title,
        items=[InsightItemResponse.model_validate(item) for item in items],
    )
