"""
ScribeJournal Backend — Draft Submission Pipeline
===================================================

What:  Orchestrates one user's in-progress journal entry: concurrent page
       transcription, one automatic title inference, and a single-flight,
       all-or-nothing final submit.
How:   A finite-state machine over two explicit sub-states plus the page
       collection. All mutation happens on the event loop thread; every
       capability call is an await, and results are re-validated when they
       come back (page token still present, draft generation unchanged).
Who:   Owned by exactly one UploadSession; driven by the draft routes.

State Machine:
    idle ──add_images──▶ uploading ──first result──▶ awaiting_title
                             │                          │
                             └──all pages resolved──────┴──▶ ready_to_submit
    ready_to_submit ──submit──▶ submitting ──ok──▶ submitted (draft cleared)
                                    │
                                    └──error──▶ submit_failed ──acknowledge──▶ ready_to_submit

    Title inference:  not_requested → in_flight → done
                      any → suppressed (manual edit)
    Submission:       idle → in_flight → succeeded | failed

Races handled:
    - Transcription result for a deleted page → dropped (token lookup)
    - Title result after a manual edit → dropped (title_locked)
    - Any result after a post-submit reset → dropped (generation counter)
    - Second submit while one is in flight → SubmitInProgressError
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

from scribejournal.exceptions import (
    CapabilityFailure,
    NotFoundError,
    SubmitInProgressError,
    ValidationError,
)
from scribejournal.services.capability_base import SummaryMode, VisionLanguageService
from scribejournal.services.file_service import FileService, ImageUpload
from scribejournal.services.journal_store import JournalStore
from scribejournal.services.page_collection import Page, PageCollection

logger = logging.getLogger(__name__)

SUBMIT_FAILED_MESSAGE = "Failed to save journal entry. Please try again."


class DraftState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    AWAITING_TITLE = "awaiting_title"
    READY_TO_SUBMIT = "ready_to_submit"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"


class TitleInference(str, Enum):
    NOT_REQUESTED = "not_requested"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    SUPPRESSED = "suppressed"


class SubmissionPhase(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PageView:
    index: int
    filename: str
    status: str
    transcription: Optional[str]


@dataclass(frozen=True)
class DraftSnapshot:
    """Immutable view of the draft, safe to serialize after the next await."""

    state: DraftState
    title: str
    title_generating: bool
    cursor: Optional[int]
    pages: Tuple[PageView, ...]
    can_submit: bool
    last_error: Optional[str]


class SubmissionPipeline:
    """
    Draft orchestration for one upload session.

    Args:
        capability: Transcription/summarization client.
        store: Journal store used for the final submit.
        file_service: Upload validator (allow-list and size limits).
        owner_id: Owner stamped on the submitted entry.
        clock: Returns the created_at timestamp for submissions.
    """

    def __init__(
        self,
        capability: VisionLanguageService,
        store: JournalStore,
        file_service: FileService,
        owner_id: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._capability = capability
        self._store = store
        self._file_service = file_service
        self.owner_id = owner_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        # Shared across resets so a token is never reused by a later draft
        self._tokens = itertools.count(1)
        self._tasks: Set["asyncio.Task[None]"] = set()

        self._generation = 0
        self.pages = PageCollection(self._tokens)
        self._title = ""
        self._title_locked = False
        self._title_inference = TitleInference.NOT_REQUESTED
        self._submission = SubmissionPhase.IDLE
        self._last_error: Optional[str] = None

    # ══════════════════════════════════════════════════════════════════════
    # Derived state
    # ══════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> DraftState:
        if self._submission is SubmissionPhase.IN_FLIGHT:
            return DraftState.SUBMITTING
        if self._submission is SubmissionPhase.FAILED:
            return DraftState.SUBMIT_FAILED
        if not len(self.pages):
            if self._submission is SubmissionPhase.SUCCEEDED:
                return DraftState.SUBMITTED
            return DraftState.IDLE
        if self.pages.has_pending:
            return DraftState.UPLOADING
        if self._title_inference is TitleInference.IN_FLIGHT:
            return DraftState.AWAITING_TITLE
        return DraftState.READY_TO_SUBMIT

    @property
    def title(self) -> str:
        return self._title

    @property
    def title_inference(self) -> TitleInference:
        return self._title_inference

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def can_submit(self) -> bool:
        return (
            self._submission is not SubmissionPhase.IN_FLIGHT
            and len(self.pages) > 0
            and not self.pages.has_pending
            and bool(self._title.strip())
        )

    def snapshot(self) -> DraftSnapshot:
        return DraftSnapshot(
            state=self.state,
            title=self._title,
            title_generating=self._title_inference is TitleInference.IN_FLIGHT,
            cursor=self.pages.cursor,
            pages=tuple(
                PageView(
                    index=index,
                    filename=page.filename,
                    status=page.status.value,
                    transcription=page.transcription if page.resolved else None,
                )
                for index, page in enumerate(self.pages)
            ),
            can_submit=self.can_submit,
            last_error=self._last_error,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Uploading
    # ══════════════════════════════════════════════════════════════════════

    def add_images(self, uploads: Sequence[ImageUpload]) -> List[Page]:
        """
        Validate, append and start transcribing a batch of images.

        Every upload is validated before any page is appended, so a rejected
        batch leaves the draft untouched and makes no capability call.

        Returns:
            The appended pages (their transcriptions are still pending).

        Raises:
            SubmitInProgressError: the draft is being saved; pages added now
                would miss the stored entry and be cleared with the draft.
            ValidationError: unsupported type, empty or oversized file.
        """
        if self._submission is SubmissionPhase.IN_FLIGHT:
            raise SubmitInProgressError(
                message="This journal entry is being saved. Add more pages once it is done."
            )
        validated = self._file_service.validate_batch(uploads)
        pages = self.pages.append(validated)
        if self._submission is SubmissionPhase.SUCCEEDED:
            self._submission = SubmissionPhase.IDLE
        for page in pages:
            self._spawn(self._transcribe_page(self._generation, page))
        if pages:
            logger.info("Draft for owner %s: transcribing %d new page(s)", self.owner_id, len(pages))
        return pages

    async def _transcribe_page(self, generation: int, page: Page) -> None:
        """Fan-out task: one capability call, written back by token."""
        try:
            text = await self._capability.transcribe(page.image, page.mime_type)
        except CapabilityFailure as e:
            logger.warning("Transcription failed for page token=%d: %s", page.token, e.message)
            self._write_transcription(generation, page.token, None, failed=True)
            return
        except Exception:
            logger.error("Unexpected transcription error for page token=%d", page.token, exc_info=True)
            self._write_transcription(generation, page.token, None, failed=True)
            return
        self._write_transcription(generation, page.token, text, failed=False)

    def _write_transcription(self, generation: int, token: int, text: Optional[str], failed: bool) -> None:
        if generation != self._generation:
            logger.info("Dropping transcription for token=%d from a submitted draft", token)
            return
        if self.pages.set_transcription(token, text, failed=failed):
            self._maybe_infer_title()

    # ══════════════════════════════════════════════════════════════════════
    # Title inference
    # ══════════════════════════════════════════════════════════════════════

    def _maybe_infer_title(self) -> None:
        """Start the draft's single automatic title request if still allowed."""
        if self._title_inference is not TitleInference.NOT_REQUESTED:
            return
        if self._title_locked or self._title:
            return
        content = self.pages.combined_content(resolved_only=True)
        if not content.strip():
            return
        self._title_inference = TitleInference.IN_FLIGHT
        self._spawn(self._infer_title(self._generation, content))

    async def _infer_title(self, generation: int, content: str) -> None:
        title: Optional[str] = None
        try:
            title = await self._capability.summarize(content, SummaryMode.TITLE)
        except CapabilityFailure as e:
            # Manual entry is the fallback; nothing is surfaced to the user
            logger.info("Title inference failed, leaving title empty: %s", e.message)
        except Exception:
            logger.error("Unexpected title inference error", exc_info=True)

        if generation != self._generation:
            logger.debug("Dropping title generated for a submitted draft")
            return
        if self._title_inference is TitleInference.IN_FLIGHT:
            self._title_inference = TitleInference.DONE
        if title and not self._title_locked and not self._title:
            self._title = title.strip()

    def set_title(self, title: str) -> None:
        """
        Manual title edit. Always wins over the automatic title and stops any
        further automatic generation for this draft.
        """
        self._title = title
        self._title_locked = True
        if self._title_inference is TitleInference.NOT_REQUESTED:
            self._title_inference = TitleInference.SUPPRESSED

    # ══════════════════════════════════════════════════════════════════════
    # Page editing
    # ══════════════════════════════════════════════════════════════════════

    def delete_page(self, index: int) -> Page:
        """
        Raises:
            NotFoundError: no page at `index`.
        """
        try:
            return self.pages.delete_at(index)
        except IndexError:
            raise NotFoundError(resource="page", resource_id=str(index))

    def move_cursor(self, delta: Optional[int] = None, position: Optional[int] = None) -> Optional[int]:
        return self.pages.move_cursor(delta=delta, position=position)

    # ══════════════════════════════════════════════════════════════════════
    # Submission
    # ══════════════════════════════════════════════════════════════════════

    async def submit(self) -> Any:
        """
        Persist the draft as one journal entry.

        Returns:
            The stored JournalEntry. The draft is reset afterwards.

        Raises:
            SubmitInProgressError: another submit is in flight (not queued).
            ValidationError: blank title, no pages, or pages still transcribing.
            CapabilityFailure: the store call failed; the draft is kept intact.
                Any other error (or cancellation) also leaves the draft in
                submit_failed before propagating.
        """
        if self._submission is SubmissionPhase.IN_FLIGHT:
            raise SubmitInProgressError()

        title = self._title.strip()
        if not title:
            raise ValidationError(message="Please give your journal entry a title.", field="title")
        if not len(self.pages):
            raise ValidationError(message="Add at least one page before saving.", field="pages")
        if self.pages.has_pending:
            raise ValidationError(
                message="Some pages are still being transcribed. Please wait a moment.",
                field="pages",
            )

        # Check-and-set with no await in between: the guard is atomic on the loop
        self._submission = SubmissionPhase.IN_FLIGHT
        self._last_error = None
        content = self.pages.combined_content()

        try:
            entry = await self._store.create_journal_entry(
                owner_id=self.owner_id,
                title=title,
                content=content,
                created_at=self._clock(),
            )
        except CapabilityFailure as e:
            self._fail_submission(e.message)
            raise
        except BaseException:
            # Unwrapped errors and cancellation still end the attempt
            self._fail_submission(SUBMIT_FAILED_MESSAGE)
            logger.error("Unexpected error while submitting for owner %s", self.owner_id, exc_info=True)
            raise

        self._reset_draft()
        self._submission = SubmissionPhase.SUCCEEDED
        logger.info("Draft submitted for owner %s as entry %s", self.owner_id, getattr(entry, "id", None))
        return entry

    def _fail_submission(self, reason: str) -> None:
        self._submission = SubmissionPhase.FAILED
        self._last_error = reason
        logger.warning("Submit failed for owner %s: %s", self.owner_id, reason)

    def acknowledge_failure(self) -> None:
        """Leave submit_failed for ready_to_submit; a no-op in any other state."""
        if self._submission is SubmissionPhase.FAILED:
            self._submission = SubmissionPhase.IDLE
            self._last_error = None

    def _reset_draft(self) -> None:
        """Start a fresh draft; results still in flight for the old one become stale."""
        self._generation += 1
        self.pages = PageCollection(self._tokens)
        self._title = ""
        self._title_locked = False
        self._title_inference = TitleInference.NOT_REQUESTED
        self._last_error = None

    # ══════════════════════════════════════════════════════════════════════
    # Task bookkeeping
    # ══════════════════════════════════════════════════════════════════════

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until no transcription or title task is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> None:
        """Cancel outstanding tasks (session closed or server shutting down)."""
        for task in list(self._tasks):
            task.cancel()
