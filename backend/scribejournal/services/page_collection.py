"""
ScribeJournal Backend — Page Collection
=========================================

What:  The ordered, mutable list of pages of one in-progress journal entry,
       plus the user's current-page cursor.
How:   Pages live in a list (position = what the user sees) but every page
       also carries a token drawn from a monotonically increasing counter.
       Asynchronous transcription results are written back by token, and the
       position of a token is looked up only at the moment it is needed.

Cursor invariant:
    0 <= cursor < len(pages) whenever pages exist; cursor is None when empty.
    Deleting re-clamps to min(cursor, len - 1).

Stale writes:
    A result whose token is no longer in the collection (page deleted, draft
    reset after submit) is logged and dropped. It can never land on another
    page, because tokens are never reused.
"""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Sequence

from scribejournal.services.file_service import ValidatedImage

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n---\n\n"
TRANSCRIPTION_ERROR_TEXT = "Error transcribing this image"


class TranscriptionStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Page:
    """One uploaded image and its transcription state."""

    token: int
    filename: str
    mime_type: str
    image: bytes = field(repr=False)
    status: TranscriptionStatus = TranscriptionStatus.PENDING
    text: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status is not TranscriptionStatus.PENDING

    @property
    def transcription(self) -> str:
        """Text shown and submitted for this page ("" while pending)."""
        if self.status is TranscriptionStatus.FAILED:
            return TRANSCRIPTION_ERROR_TEXT
        return self.text or ""


class PageCollection:
    """
    Ordered pages with a clamped cursor.

    Args:
        tokens: Shared token counter. The pipeline passes the same counter to
            every collection it creates so tokens stay unique across draft resets.
    """

    def __init__(self, tokens: Optional[Iterator[int]] = None):
        self._pages: List[Page] = []
        self._tokens = tokens if tokens is not None else itertools.count(1)
        self._cursor: Optional[int] = None

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(list(self._pages))

    def __getitem__(self, index: int) -> Page:
        return self._pages[index]

    @property
    def cursor(self) -> Optional[int]:
        return self._cursor

    @property
    def current(self) -> Optional[Page]:
        if self._cursor is None:
            return None
        return self._pages[self._cursor]

    @property
    def has_pending(self) -> bool:
        return any(not page.resolved for page in self._pages)

    def index_of(self, token: int) -> Optional[int]:
        """Live position of the page with `token`, or None if it is gone."""
        for index, page in enumerate(self._pages):
            if page.token == token:
                return index
        return None

    def get(self, token: int) -> Optional[Page]:
        index = self.index_of(token)
        return None if index is None else self._pages[index]

    # ── Mutations ─────────────────────────────────────────────────────────

    def append(self, images: Sequence[ValidatedImage]) -> List[Page]:
        """
        Append one pending page per image, in input order, at the tail.

        Returns:
            The new pages (empty list for empty input).
        """
        added = [
            Page(
                token=next(self._tokens),
                filename=image.filename,
                mime_type=image.mime_type,
                image=image.data,
            )
            for image in images
        ]
        if not added:
            return added
        self._pages.extend(added)
        if self._cursor is None:
            self._cursor = 0
        logger.debug(
            "Appended %d page(s), tokens %s, collection size %d",
            len(added),
            [page.token for page in added],
            len(self._pages),
        )
        return added

    def set_transcription(
        self,
        token: int,
        text: Optional[str] = None,
        failed: bool = False,
    ) -> bool:
        """
        Resolve the page identified by `token`.

        Returns:
            True if the page was updated; False if it no longer exists or was
            already resolved. Never raises for a stale token.
        """
        page = self.get(token)
        if page is None:
            logger.info("Dropping transcription result for removed page token=%d", token)
            return False
        if page.resolved:
            logger.warning("Ignoring second transcription result for page token=%d", token)
            return False
        if failed:
            page.status = TranscriptionStatus.FAILED
            page.text = None
        else:
            page.status = TranscriptionStatus.DONE
            page.text = text or ""
        return True

    def delete_at(self, index: int) -> Page:
        """
        Remove the page at `index` and re-clamp the cursor.

        Raises:
            IndexError: no page at that position (negative indexes included).
        """
        if index < 0 or index >= len(self._pages):
            raise IndexError(index)
        removed = self._pages.pop(index)
        if not self._pages:
            self._cursor = None
        else:
            cursor = self._cursor or 0
            # Keep pointing at the same page when an earlier one goes away
            if index < cursor:
                cursor -= 1
            self._cursor = min(cursor, len(self._pages) - 1)
        logger.debug("Deleted page token=%d at index %d", removed.token, index)
        return removed

    def move_cursor(self, delta: Optional[int] = None, position: Optional[int] = None) -> Optional[int]:
        """
        Move the cursor relatively (`delta`) or absolutely (`position`),
        clamped to [0, len - 1]. Returns the new cursor (None when empty).
        """
        if not self._pages:
            self._cursor = None
            return None
        if position is not None:
            target = position
        else:
            target = (self._cursor or 0) + (delta or 0)
        self._cursor = max(0, min(target, len(self._pages) - 1))
        return self._cursor

    def clear(self) -> None:
        self._pages.clear()
        self._cursor = None

    # ── Derived content ───────────────────────────────────────────────────

    def combined_content(self, resolved_only: bool = False) -> str:
        """
        Page transcriptions in current order, joined by PAGE_SEPARATOR.

        Args:
            resolved_only: Skip pending pages (used for title input). Failed
                pages contribute their error text.
        """
        pages = self._pages
        if resolved_only:
            pages = [page for page in pages if page.resolved]
        return PAGE_SEPARATOR.join(page.transcription for page in pages)
