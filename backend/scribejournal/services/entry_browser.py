"""
ScribeJournal Backend — Entry Browser
=======================================

What:  Read-only list + detail view over the owner's submitted entries.
How:   One browser per mount (one HTTP request). `load()` fetches the
       entries once, newest first, and selects the first one. Selecting
       never re-fetches. Fetch failures propagate to the caller; nothing
       is retried.
"""

import logging
from typing import List, Optional
from uuid import UUID

from scribejournal.exceptions import NotFoundError
from scribejournal.models.journal import JournalEntry
from scribejournal.services.journal_store import JournalStore

logger = logging.getLogger(__name__)


class EntryBrowser:
    def __init__(self, store: JournalStore, owner_id: str):
        self._store = store
        self.owner_id = owner_id
        self._entries: Optional[List[JournalEntry]] = None
        self._selected: Optional[JournalEntry] = None

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    @property
    def entries(self) -> List[JournalEntry]:
        return list(self._entries or [])

    @property
    def selected(self) -> Optional[JournalEntry]:
        return self._selected

    async def load(self) -> List[JournalEntry]:
        """Fetch once; later calls return the same list."""
        if self._entries is None:
            self._entries = await self._store.list_journal_entries(self.owner_id)
            self._selected = self._entries[0] if self._entries else None
            logger.debug("Entry browser loaded %d entries for owner %s", len(self._entries), self.owner_id)
        return self.entries

    async def select(self, entry_id: UUID) -> JournalEntry:
        """
        Raises:
            NotFoundError: the owner has no entry with this id.
        """
        for entry in await self.load():
            if entry.id == entry_id:
                self._selected = entry
                return entry
        raise NotFoundError(resource="journal entry", resource_id=str(entry_id))
