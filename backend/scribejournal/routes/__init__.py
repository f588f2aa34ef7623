# Routes package init
"""
ScribeJournal Backend — API Routes Package
============================================

Route Inventory:
    - sessions.py:        POST   /api/sessions, DELETE /api/sessions/current
    - drafts.py:          GET    /api/draft and the draft editing actions
    - entries.py:         GET    /api/entries, GET /api/entries/{id}
    - insights.py:        GET    /api/insights/modes, POST /api/insights/{mode}
    - transcriptions.py:  POST   /api/transcriptions (raw ingestion)
    - health.py:          GET    /health

Routes stay thin: resolve the session, call one service method, shape the
response. Domain errors propagate to the handlers registered in main.py.
"""
