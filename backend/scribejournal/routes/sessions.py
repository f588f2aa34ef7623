"""
ScribeJournal Backend — Session Routes
========================================

What:  Start and end an upload session.
How:   POST /api/sessions is the landing point of the auth provider's
       sign-in redirect (AUTH_REDIRECT_URL points the browser back to the
       frontend, which then calls this with the verified owner id).
       DELETE /api/sessions/current signs out and discards the draft.
"""

import logging

from fastapi import APIRouter, Depends, Header, Response

from scribejournal.exceptions import NotAuthenticatedError
from scribejournal.schemas.journal import ErrorResponse, SessionCreateRequest, SessionResponse
from scribejournal.routes.dependencies import get_session_registry
from scribejournal.services.session_service import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


@router.post(
    "",
    status_code=201,
    response_model=SessionResponse,
    responses={400: {"description": "Missing owner id", "model": ErrorResponse}},
    summary="Start an upload session",
)
async def create_session(
    body: SessionCreateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    session = registry.create(body.owner_id)
    return SessionResponse(
        session_token=session.token,
        owner_id=session.owner_id,
        expires_at=session.expires_at,
    )


@router.delete(
    "/current",
    status_code=204,
    responses={401: {"description": "No active session", "model": ErrorResponse}},
    summary="Sign out",
)
async def delete_session(
    x_session_token: str = Header(default=""),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    if not registry.close(x_session_token):
        raise NotAuthenticatedError()
    return Response(status_code=204)
