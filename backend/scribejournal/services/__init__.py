# Services package init
"""
ScribeJournal Backend — Services Layer
========================================

What:  Journal logic between the HTTP routes and the external capabilities.
How:   Services take explicit collaborators (capability client, store,
       validator) in their constructors; create_app() wires them once.

Service Inventory:
    - VisionLanguageService (abstract): transcribe / summarize contract
    - GeminiService: Google Gemini implementation of that contract
    - FileService: upload allow-list and size validation
    - JournalStore: journal entry and raw transcription persistence
    - PageCollection: ordered draft pages with a clamped cursor
    - SubmissionPipeline: draft state machine (transcribe, title, submit)
    - EntryBrowser: fetch-once list + detail over submitted entries
    - InsightEngine: cached entries → summary → parsed insight items
    - SessionRegistry: upload sessions owning one draft each

The pipeline and the insight engine never import FastAPI; they are
exercised directly in the unit tests.
"""
