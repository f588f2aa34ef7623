"""
ScribeJournal Backend — Journal SQLAlchemy Models
===================================================

What:  ORM models for the `journal_entries` and `transcriptions` tables.
How:   Inherit from the shared DeclarativeBase; Alembic reads them for migrations.
Who:   Used only by JournalStore. Nothing else touches the ORM.

Table Design:
    - UUID primary keys generated in Python (portable across PostgreSQL and SQLite)
    - owner_id on every row: the store filters every query by it
    - created_at with timezone, supplied by the caller at submit time
    - Composite index (owner_id, created_at DESC) serves "my entries, newest first"
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from scribejournal.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JournalEntry(Base):
    """
    A submitted, titled journal entry.

    Lifecycle:
        Created once by the submission pipeline's final submit; immutable after.
        `content` is the draft's page transcriptions joined with "\\n\\n---\\n\\n".
    """

    __tablename__ = "journal_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier assigned by the store",
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="User-confirmed entry title (never blank)",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Page transcriptions joined with the page separator",
    )

    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Authenticated owner; every read and write is scoped by it",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the entry was submitted (UTC)",
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntry(id={self.id}, owner_id='{self.owner_id}', "
            f"created_at='{self.created_at}')>"
        )


# "My entries, newest first"
Index(
    "idx_journal_entries_owner_created",
    JournalEntry.owner_id,
    JournalEntry.created_at.desc(),
)


class RawTranscription(Base):
    """
    A raw transcription record written by the ingestion endpoint.

    Keeps the original upload file names next to the combined text so the
    source images can be traced later.
    """

    __tablename__ = "transcriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    original_files: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Original file names of the transcribed images",
    )

    owner_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<RawTranscription(id={self.id}, files={len(self.original_files or [])})>"
