"""
ScribeJournal Backend — Journal Entry Routes
==============================================

What:  Read-only list and detail of the caller's submitted entries.
How:   Each request mounts a new EntryBrowser, so each request fetches once.
       Entries are scoped to the session owner inside the store; another
       owner's entry id is indistinguishable from a missing one (404).
"""

import uuid

from fastapi import APIRouter, Depends

from scribejournal.routes.dependencies import get_entry_browser
from scribejournal.schemas.journal import (
    ErrorResponse,
    JournalEntryListResponse,
    JournalEntryResponse,
)
from scribejournal.services.entry_browser import EntryBrowser

router = APIRouter(prefix="/api/entries", tags=["Entries"])


@router.get(
    "",
    response_model=JournalEntryListResponse,
    responses={500: {"description": "Store failure", "model": ErrorResponse}},
    summary="List journal entries (newest first)",
)
async def list_entries(browser: EntryBrowser = Depends(get_entry_browser)) -> JournalEntryListResponse:
    entries = await browser.load()
    return JournalEntryListResponse(
        entries=[JournalEntryResponse.model_validate(entry) for entry in entries],
        selected_id=browser.selected.id if browser.selected else None,
        total_count=len(entries),
    )


@router.get(
    "/{entry_id}",
    response_model=JournalEntryResponse,
    responses={404: {"description": "Entry not found", "model": ErrorResponse}},
    summary="Get one journal entry",
)
async def get_entry(
    entry_id: uuid.UUID,
    browser: EntryBrowser = Depends(get_entry_browser),
) -> JournalEntryResponse:
    return JournalEntryResponse.model_validate(await browser.select(entry_id))
