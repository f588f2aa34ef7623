# Middleware package init
"""
ScribeJournal Backend — Middleware Package
============================================

Middleware Chain:
    Request → [Request ID] → [Access Log] → [CORS] → [GZip] → Route Handler

    1. Request ID: accept or generate X-Request-ID and expose it via a ContextVar
    2. Access Log: one line per request with status and duration
    3. CORS / GZip: FastAPI's stock middleware
"""
