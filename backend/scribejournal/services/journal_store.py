"""
ScribeJournal Backend — Journal Store
=======================================

What:  Persistence capability: create and list journal entries, create raw
       transcription records.
How:   Each call opens its own AsyncSession from the factory, does one
       single-row insert or one select, and commits. A call either fully
       succeeds or leaves nothing behind (the session rolls back on error).
Who:   Submission pipeline (create), entry browser and insight engine (list),
       ingestion route (raw transcription).

Owner isolation:
    Every read is filtered by owner_id and every write stamps it. Callers
    cannot reach another owner's rows through this class.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scribejournal.exceptions import StoreFailure
from scribejournal.models.journal import JournalEntry, RawTranscription

logger = logging.getLogger(__name__)


class JournalStore:
    """
    Stateless adapter over the journal tables.

    Error Handling Strategy:
        SQLAlchemy errors are wrapped in StoreFailure (generic message, details
        in context). Nothing is retried.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_journal_entry(
        self,
        owner_id: str,
        title: str,
        content: str,
        created_at: Optional[datetime] = None,
    ) -> JournalEntry:
        """
        Insert one journal entry.

        Returns:
            The persisted JournalEntry (detached, attributes loaded).

        Raises:
            StoreFailure: the insert or commit failed; no row was created.
        """
        entry = JournalEntry(
            title=title,
            content=content,
            owner_id=owner_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(entry)
        except SQLAlchemyError as e:
            logger.error("Failed to create journal entry for owner %s: %s", owner_id, str(e))
            raise StoreFailure(
                message="Failed to save journal entry. Please try again.",
                context={"operation": "create_journal_entry", "error_type": type(e).__name__},
            )

        logger.info("Journal entry %s created (%d chars)", entry.id, len(content))
        return entry

    async def list_journal_entries(self, owner_id: str) -> List[JournalEntry]:
        """
        All entries of one owner, newest first.

        Query plan:
            SELECT ... WHERE owner_id = :owner ORDER BY created_at DESC
            → idx_journal_entries_owner_created
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(JournalEntry)
                    .where(JournalEntry.owner_id == owner_id)
                    .order_by(desc(JournalEntry.created_at), desc(JournalEntry.id))
                )
                entries = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Failed to list journal entries for owner %s: %s", owner_id, str(e))
            raise StoreFailure(
                message="Failed to fetch journal entries. Please try again.",
                context={"operation": "list_journal_entries", "error_type": type(e).__name__},
            )

        logger.debug("Loaded %d journal entries for owner %s", len(entries), owner_id)
        return entries

    async def create_raw_transcription(
        self,
        content: str,
        original_files: Sequence[str],
        created_at: Optional[datetime] = None,
        owner_id: Optional[str] = None,
    ) -> UUID:
        """
        Insert one raw transcription record.

        Returns:
            The new record's id.
        """
        record = RawTranscription(
            content=content,
            original_files=list(original_files),
            owner_id=owner_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(record)
        except SQLAlchemyError as e:
            logger.error("Error saving transcription: %s", str(e))
            raise StoreFailure(
                message="Failed to save transcription",
                context={"operation": "create_raw_transcription", "error_type": type(e).__name__},
            )

        logger.info("Raw transcription %s saved (%d files)", record.id, len(record.original_files))
        return record.id
