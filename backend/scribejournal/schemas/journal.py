"""
ScribeJournal Backend — Pydantic Request/Response Schemas
===========================================================

What:  The API contract between the browser and the backend.
How:   FastAPI validates request bodies against these models and serializes
       responses through them. Response models read service objects
       (ORM rows, frozen draft snapshots) with `from_attributes`.
Who:   Route handlers; the frontend mirrors these shapes.

Schemas are kept apart from the ORM models so the API never leaks
owner ids of other users or internal bookkeeping fields.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ══════════════════════════════════════════════════════════════════════════
# Sessions
# ══════════════════════════════════════════════════════════════════════════


class SessionCreateRequest(BaseModel):
    """Sent by the sign-in redirect once the auth provider has verified the user."""

    owner_id: str = Field(min_length=1, max_length=64, description="Verified user id")


class SessionResponse(BaseModel):
    session_token: str = Field(description="Send back as the X-Session-Token header")
    owner_id: str
    expires_at: datetime = Field(description="Sliding expiry (UTC), renewed on every request")


# ══════════════════════════════════════════════════════════════════════════
# Draft
# ══════════════════════════════════════════════════════════════════════════


class PageResponse(BaseModel):
    """
    One draft page. `transcription` is null while pending and holds the
    error sentinel text when transcription failed.
    """

    index: int = Field(description="Current position (0-based); shifts left on delete")
    filename: str
    status: str = Field(description="pending, done or failed")
    transcription: Optional[str] = None

    model_config = {"from_attributes": True}


class DraftResponse(BaseModel):
    """
    What:  Snapshot of the session's draft entry.
    When:  Returned by every draft route; clients poll GET /api/draft while
           pages are transcribing or a title is being generated.
    """

    state: str = Field(
        description=(
            "idle, uploading, awaiting_title, ready_to_submit, submitting, "
            "submitted or submit_failed"
        )
    )
    title: str
    title_generating: bool
    cursor: Optional[int] = Field(default=None, description="Current page index, null when empty")
    pages: List[PageResponse]
    can_submit: bool
    last_error: Optional[str] = Field(default=None, description="Why the last submit failed")

    model_config = {"from_attributes": True}


class TitleUpdateRequest(BaseModel):
    title: str = Field(max_length=255)


class CursorUpdateRequest(BaseModel):
    """Exactly one of `position` (absolute) or `delta` (relative)."""

    position: Optional[int] = None
    delta: Optional[int] = None

    @model_validator(mode="after")
    def exactly_one(self) -> "CursorUpdateRequest":
        if (self.position is None) == (self.delta is None):
            raise ValueError("Provide exactly one of 'position' or 'delta'")
        return self


# ══════════════════════════════════════════════════════════════════════════
# Journal entries
# ══════════════════════════════════════════════════════════════════════════


class JournalEntryResponse(BaseModel):
    id: uuid.UUID
    title: str
    content: str = Field(description='Page transcriptions joined with "\\n\\n---\\n\\n"')
    created_at: datetime

    model_config = {"from_attributes": True}


class JournalEntryListResponse(BaseModel):
    """Newest first. `selected_id` is the entry the browser opens by default."""

    entries: List[JournalEntryResponse]
    selected_id: Optional[uuid.UUID] = None
    total_count: int


class SubmitResponse(BaseModel):
    message: str = Field(default="Journal entry saved successfully!")
    entry: JournalEntryResponse


# ══════════════════════════════════════════════════════════════════════════
# Insights
# ══════════════════════════════════════════════════════════════════════════


class InsightModeResponse(BaseModel):
    id: str
    title: str
    description: str


class InsightItemResponse(BaseModel):
    label: Optional[str] = Field(default=None, description="Text before the first ': ', if any")
    body: str
    text: str

    model_config = {"from_attributes": True}


class InsightResponse(BaseModel):
    mode: str
    title: str
    items: List[InsightItemResponse]


# ══════════════════════════════════════════════════════════════════════════
# Raw transcription ingestion
# ══════════════════════════════════════════════════════════════════════════


class TranscriptionCreateRequest(BaseModel):
    """Accepts both snake_case and the camelCase keys older clients send."""

    content: str
    original_files: List[str] = Field(default_factory=list, alias="originalFiles")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True}

    @field_validator("original_files")
    @classmethod
    def strip_filenames(cls, v: List[str]) -> List[str]:
        return [name.strip() for name in v if name and name.strip()]


class TranscriptionCreateResponse(BaseModel):
    id: uuid.UUID


# ══════════════════════════════════════════════════════════════════════════
# Errors / health
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standard error body for every API error.

    Example:
        {
            "error": "validation_error",
            "message": "Please give your journal entry a title.",
            "details": {"field": "title"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    capability: str = Field(description="available or unavailable")
    active_sessions: int
    uptime_seconds: float
