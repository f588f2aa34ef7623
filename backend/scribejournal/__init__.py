"""
ScribeJournal Backend — Application Package Initializer
=======================================================

What: Marks the `scribejournal` directory as a Python package.
Who:  Used by uvicorn (`scribejournal.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Upload sessions & draft pipeline  │  ← In-memory, per user session
    ├─────────────────────────────────────┤
    │    Services (capability + store)    │  ← Gemini adapter, journal store
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘

    The draft pipeline never imports FastAPI; routes translate between HTTP
    and the pipeline's snapshots and exceptions.
"""

__version__ = "1.0.0"
