"""Create journal tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates `journal_entries` (submitted entries) and `transcriptions`
       (raw ingestion records).
Index: (owner_id, created_at DESC) serves the entry list and the insight fetch.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Unique identifier assigned by the store"),
        sa.Column("title", sa.String(255), nullable=False, comment="User-confirmed entry title (never blank)"),
        sa.Column(
            "content",
            sa.Text(),
            nullable=False,
            comment="Page transcriptions joined with the page separator",
        ),
        sa.Column(
            "owner_id",
            sa.String(64),
            nullable=False,
            comment="Authenticated owner; every read and write is scoped by it",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the entry was submitted (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_journal_entries_owner_created",
        "journal_entries",
        ["owner_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "transcriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "original_files",
            sa.JSON(),
            nullable=False,
            comment="Original file names of the transcribed images",
        ),
        sa.Column("owner_id", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("transcriptions")
    op.drop_index("idx_journal_entries_owner_created", table_name="journal_entries")
    op.drop_table("journal_entries")
