"""
ScribeJournal Backend — Draft Routes
======================================

What:  HTTP surface of the session's in-progress journal entry.
How:   Every handler resolves the caller's UploadSession, performs one
       pipeline action and returns a fresh DraftResponse snapshot.
       Transcription and title generation keep running after the response
       is sent; clients poll GET /api/draft to watch pages resolve.

Request Flow (typical):
    POST /api/draft/pages        → 202, pages pending
    GET  /api/draft              → pages done, title filled in
    PUT  /api/draft/title        → optional manual edit
    POST /api/draft/submit       → 201, draft cleared
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from scribejournal.routes.dependencies import get_upload_session
from scribejournal.schemas.journal import (
    CursorUpdateRequest,
    DraftResponse,
    ErrorResponse,
    JournalEntryResponse,
    PageResponse,
    SubmitResponse,
    TitleUpdateRequest,
)
from scribejournal.services.file_service import ImageUpload
from scribejournal.services.session_service import UploadSession
from scribejournal.services.submission_pipeline import DraftSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/draft", tags=["Draft"])


def draft_response(snapshot: DraftSnapshot) -> DraftResponse:
    return DraftResponse(
        state=snapshot.state.value,
        title=snapshot.title,
        title_generating=snapshot.title_generating,
        cursor=snapshot.cursor,
        pages=[PageResponse.model_validate(page) for page in snapshot.pages],
        can_submit=snapshot.can_submit,
        last_error=snapshot.last_error,
    )


@router.get("", response_model=DraftResponse, summary="Current draft")
async def get_draft(session: UploadSession = Depends(get_upload_session)) -> DraftResponse:
    return draft_response(session.pipeline.snapshot())


@router.post(
    "/pages",
    status_code=202,
    response_model=DraftResponse,
    responses={
        400: {"description": "Unsupported, empty or oversized image", "model": ErrorResponse},
        401: {"description": "No valid session", "model": ErrorResponse},
        409: {"description": "The draft is being saved", "model": ErrorResponse},
    },
    summary="Add page images",
    description=(
        "Upload one or more handwritten page images (JPEG, JPG, PNG, GIF, BMP). "
        "The batch is rejected as a whole if any file is invalid. Accepted pages "
        "are transcribed in the background. File contents are checked, not just "
        "the name and declared type."
    ),
)
async def add_pages(
    files: List[UploadFile] = File(..., description="Page images, in page order"),
    session: UploadSession = Depends(get_upload_session),
) -> DraftResponse:
    uploads = []
    try:
        for upload in files:
            uploads.append(
                ImageUpload(
                    filename=upload.filename or "page",
                    data=await upload.read(),
                    content_type=upload.content_type,
                )
            )
    finally:
        for upload in files:
            await upload.close()

    logger.info(
        "Received %d page image(s) (%d bytes) for owner %s",
        len(uploads),
        sum(len(u.data) for u in uploads),
        session.owner_id,
    )
    session.pipeline.add_images(uploads)
    return draft_response(session.pipeline.snapshot())


@router.delete(
    "/pages/{index}",
    response_model=DraftResponse,
    responses={404: {"description": "No page at this index", "model": ErrorResponse}},
    summary="Delete a page",
)
async def delete_page(index: int, session: UploadSession = Depends(get_upload_session)) -> DraftResponse:
    session.pipeline.delete_page(index)
    return draft_response(session.pipeline.snapshot())


@router.put("/cursor", response_model=DraftResponse, summary="Move the page cursor")
async def move_cursor(
    body: CursorUpdateRequest,
    session: UploadSession = Depends(get_upload_session),
) -> DraftResponse:
    session.pipeline.move_cursor(delta=body.delta, position=body.position)
    return draft_response(session.pipeline.snapshot())


@router.put("/title", response_model=DraftResponse, summary="Edit the title")
async def update_title(
    body: TitleUpdateRequest,
    session: UploadSession = Depends(get_upload_session),
) -> DraftResponse:
    session.pipeline.set_title(body.title)
    return draft_response(session.pipeline.snapshot())


@router.post(
    "/submit",
    status_code=201,
    response_model=SubmitResponse,
    responses={
        400: {"description": "Blank title, no pages, or pages still transcribing", "model": ErrorResponse},
        409: {"description": "A submit is already running", "model": ErrorResponse},
        500: {"description": "Store failure; the draft is kept", "model": ErrorResponse},
    },
    summary="Save the draft as a journal entry",
)
async def submit_draft(session: UploadSession = Depends(get_upload_session)) -> SubmitResponse:
    entry = await session.submit()
    return SubmitResponse(entry=JournalEntryResponse.model_validate(entry))


@router.post("/acknowledge", response_model=DraftResponse, summary="Dismiss a failed submit")
async def acknowledge_failure(session: UploadSession = Depends(get_upload_session)) -> DraftResponse:
    session.pipeline.acknowledge_failure()
    return draft_response(session.pipeline.snapshot())
