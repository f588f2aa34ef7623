"""
ScribeJournal Backend — Test Configuration (conftest.py)
==========================================================

What:  Shared fixtures and test doubles for the whole suite.
How:   Environment is pinned before any application import; the capability
       client and the store are replaced by in-memory fakes whose calls can
       be held open with asyncio.Event gates, so tests decide exactly when
       (and in which order) each transcription resolves.

Fixture Hierarchy:
    sniffed_mime      autouse stub for libmagic (payloads here are labels, not images)
    capability        FakeCapability (gated transcribe / summarize)
    store             FakeStore (in-memory entries, injectable failures)
    file_service      FileService with a 1MB limit
    pipeline          SubmissionPipeline wired to the fakes
    db_session_factory  aiosqlite in-memory database with the real tables
    app / client      create_app() with fakes + httpx AsyncClient (ASGITransport)
"""

import asyncio
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple, Union
from unittest.mock import patch

# Pinned before any scribejournal import (module-level create_app reads them)
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from scribejournal.config import Settings
from scribejournal.database import Base, create_session_factory
from scribejournal.exceptions import StoreFailure
from scribejournal.services.capability_base import SummaryMode, VisionLanguageService
from scribejournal.services.file_service import FileService, ImageUpload
from scribejournal.services.submission_pipeline import SubmissionPipeline

FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


async def settle(rounds: int = 20) -> None:
    """Let every ready task run until the loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def png_upload(name: str = "page.png", payload: bytes = b"\x89PNG\r\n\x1a\nfake") -> ImageUpload:
    # Payload doubles as the fake's lookup key, so keep it unique per page
    return ImageUpload(filename=name, data=payload, content_type="image/png")


# ══════════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════════


class FakeCapability(VisionLanguageService):
    """
    Scriptable capability client.

    transcripts:  image bytes → text, or an Exception to raise
    gates:        image bytes → Event; transcribe waits on it when present
    title / title_error / title_gate: behaviour of summarize(…, TITLE)
    insight_output / insight_error:   behaviour of the insight modes
    """

    def __init__(self):
        self.transcripts: Dict[bytes, Union[str, Exception]] = {}
        self.gates: Dict[bytes, asyncio.Event] = {}
        self.title: str = "A Generated Title"
        self.title_error: Optional[Exception] = None
        self.title_gate: Optional[asyncio.Event] = None
        self.insight_output: str = "• Theme: Gratitude shows up often"
        self.insight_error: Optional[Exception] = None
        self.healthy = True
        self.transcribe_calls: List[bytes] = []
        self.summarize_calls: List[Tuple[str, SummaryMode]] = []

    def gate(self, image: bytes) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[image] = event
        return event

    async def transcribe(self, image: bytes, mime_type: str) -> str:
        self.transcribe_calls.append(image)
        if image in self.gates:
            await self.gates[image].wait()
        result = self.transcripts.get(image, f"text of {image!r}")
        if isinstance(result, Exception):
            raise result
        return result

    async def summarize(self, text: str, mode: SummaryMode) -> str:
        self.summarize_calls.append((text, mode))
        if mode is SummaryMode.TITLE:
            if self.title_gate is not None:
                await self.title_gate.wait()
            if self.title_error is not None:
                raise self.title_error
            return self.title
        if self.insight_error is not None:
            raise self.insight_error
        return self.insight_output

    async def health_check(self) -> bool:
        return self.healthy

    @property
    def title_calls(self) -> int:
        return sum(1 for _, mode in self.summarize_calls if mode is SummaryMode.TITLE)


@dataclass
class StoredEntry:
    title: str
    content: str
    owner_id: str
    created_at: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeStore:
    """In-memory journal store with the JournalStore call signatures."""

    def __init__(self):
        self.entries: List[StoredEntry] = []
        self.transcriptions: List[dict] = []
        self.create_calls = 0
        self.list_calls = 0
        self.fail_create: Optional[Exception] = None
        self.fail_list: Optional[Exception] = None
        self.create_gate: Optional[asyncio.Event] = None

    async def create_journal_entry(self, owner_id, title, content, created_at=None):
        self.create_calls += 1
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_create is not None:
            raise self.fail_create
        entry = StoredEntry(title=title, content=content, owner_id=owner_id, created_at=created_at or FIXED_NOW)
        self.entries.append(entry)
        return entry

    async def list_journal_entries(self, owner_id):
        self.list_calls += 1
        if self.fail_list is not None:
            raise self.fail_list
        mine = [e for e in self.entries if e.owner_id == owner_id]
        return sorted(mine, key=lambda e: e.created_at, reverse=True)

    async def create_raw_transcription(self, content, original_files, created_at=None, owner_id=None):
        if self.fail_create is not None:
            raise self.fail_create
        record_id = uuid.uuid4()
        self.transcriptions.append(
            {"id": record_id, "content": content, "original_files": list(original_files), "created_at": created_at}
        )
        return record_id

    def add(self, owner_id: str, title: str, content: str, minutes_ago: int = 0) -> StoredEntry:
        entry = StoredEntry(
            title=title,
            content=content,
            owner_id=owner_id,
            created_at=FIXED_NOW - timedelta(minutes=minutes_ago),
        )
        self.entries.append(entry)
        return entry


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def sniffed_mime(request):
    """
    Stub for libmagic's content detection, returning "image/png".

    Page payloads throughout the suite are short labels that key the fake
    capability, not real images. Tests marked `libmagic` use the real library.
    """
    if request.node.get_closest_marker("libmagic"):
        yield None
        return
    with patch(
        "scribejournal.services.file_service.magic.from_buffer",
        return_value="image/png",
    ) as mock_from_buffer:
        yield mock_from_buffer


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        gemini_api_key="test-key-not-real",
        log_level="WARNING",
        max_file_size=1_048_576,
        session_ttl_seconds=3600,
    )


@pytest.fixture
def capability():
    return FakeCapability()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def file_service():
    return FileService(max_file_size=1_048_576, max_files_per_upload=20)


@pytest.fixture
def pipeline(capability, store, file_service):
    return SubmissionPipeline(
        capability=capability,
        store=store,
        file_service=file_service,
        owner_id="user-1",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def store_failure():
    return StoreFailure(message="Failed to save journal entry. Please try again.")


@pytest_asyncio.fixture
async def db_session_factory():
    """
    Real tables on an in-memory SQLite database.

    StaticPool keeps the single connection alive, so every session sees
    the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import scribejournal.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory: async_sessionmaker = create_session_factory(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def app(settings, capability, store):
    from scribejournal.main import create_app

    return create_app(settings=settings, capability=capability, store=store)


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX client talking to the app in-process.

    ASGITransport does not run the lifespan, so startup validation is
    exercised separately.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def session_headers(client):
    response = await client.post("/api/sessions", json={"owner_id": "user-1"})
    assert response.status_code == 201
    return {"X-Session-Token": response.json()["session_token"]}
