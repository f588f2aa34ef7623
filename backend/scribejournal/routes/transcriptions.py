"""
ScribeJournal Backend — Raw Transcription Ingestion
=====================================================

What:  POST /api/transcriptions stores one raw transcription record
       (content plus the names of the images it came from).
How:   A single store insert. Failures answer with the fixed body
       {"error": "Failed to save transcription"} that ingestion clients
       match on, not the standard error envelope.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from scribejournal.exceptions import StoreFailure
from scribejournal.routes.dependencies import get_store
from scribejournal.schemas.journal import TranscriptionCreateRequest, TranscriptionCreateResponse
from scribejournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Transcriptions"])

SAVE_FAILED_BODY = {"error": "Failed to save transcription"}


@router.post(
    "/transcriptions",
    status_code=201,
    response_model=TranscriptionCreateResponse,
    responses={500: {"description": "Store failure", "content": {"application/json": {"example": SAVE_FAILED_BODY}}}},
    summary="Store a raw transcription",
)
async def create_transcription(
    body: TranscriptionCreateRequest,
    store: JournalStore = Depends(get_store),
):
    try:
        record_id = await store.create_raw_transcription(
            content=body.content,
            original_files=body.original_files,
            created_at=body.created_at,
        )
    except StoreFailure as e:
        logger.error("Raw transcription ingestion failed: %s | Context: %s", e.message, e.context)
        return JSONResponse(status_code=500, content=SAVE_FAILED_BODY)
    return TranscriptionCreateResponse(id=record_id)
