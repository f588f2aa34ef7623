"""
ScribeJournal Backend — Route Dependencies
============================================

What:  FastAPI dependencies that hand route handlers the objects create_app()
       placed on app.state.
How:   Plain functions reading `request.app.state`; tests override them with
       `app.dependency_overrides` or build the app with fakes.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from scribejournal.services.entry_browser import EntryBrowser
from scribejournal.services.journal_store import JournalStore
from scribejournal.services.session_service import SessionRegistry, UploadSession


def get_store(request: Request) -> JournalStore:
    return request.app.state.store


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_upload_session(
    x_session_token: Optional[str] = Header(default=None),
    registry: SessionRegistry = Depends(get_session_registry),
) -> UploadSession:
    """
    Resolve the caller's upload session from the X-Session-Token header.

    Raises NotAuthenticatedError / SessionExpiredError (both → 401).
    """
    return registry.resolve(x_session_token)


def get_entry_browser(
    session: UploadSession = Depends(get_upload_session),
    store: JournalStore = Depends(get_store),
) -> EntryBrowser:
    """A fresh browser per request: every request is one fetch-once mount."""
    return EntryBrowser(store, session.owner_id)
