"""
ScribeJournal Backend — FastAPI Application Factory
=====================================================

What:  Builds and configures the FastAPI application.
How:   `create_app()` constructs every long-lived collaborator from one
       explicit Settings object (engine, journal store, capability client,
       upload validator, session registry) and stores them on `app.state`.
       Routes reach them through `routes.dependencies`.
Who:   uvicorn (`uvicorn scribejournal.main:app`) and the test suite, which
       calls create_app() with fakes.

Application Architecture:
    Middleware:  Request ID → Access Log → CORS → GZip
    Routes:      /api/sessions  /api/draft  /api/entries  /api/insights
                 /api/transcriptions  /health
    Errors:      ValidationError→400  Authentication→401  NotFound→404
                 SubmitInProgress→409  EmptyResult→422  Store→500
                 Capability→503  anything else→500

Lifecycle:
    Startup:   configure logging, validate settings (missing Gemini key
               aborts startup)
    Shutdown:  close upload sessions, dispose the database engine
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from scribejournal import __version__
from scribejournal.config import Settings
from scribejournal.database import create_engine, create_session_factory, dispose_engine
from scribejournal.exceptions import (
    AuthenticationError,
    CapabilityFailure,
    EmptyResultError,
    NotFoundError,
    ScribeJournalError,
    StoreFailure,
    SubmitInProgressError,
    ValidationError,
)
from scribejournal.middleware.logging import RequestLoggingMiddleware
from scribejournal.middleware.request_id import RequestIDMiddleware, request_id_var
from scribejournal.routes import drafts, entries, health, insights, sessions, transcriptions
from scribejournal.services.capability_base import VisionLanguageService
from scribejournal.services.file_service import FileService
from scribejournal.services.gemini_service import GeminiService
from scribejournal.services.journal_store import JournalStore
from scribejournal.services.session_service import SESSION_HEADER, SessionRegistry

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Chatty at INFO for every call
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info("=" * 60)
    logger.info("ScribeJournal Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        raise

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("ScribeJournal Backend shutting down...")
    app.state.sessions.close_all()
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

    Server-side failures (store, unexpected) never return their context;
    it is logged instead.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=error_body(exc.code, exc.message),
            headers={"WWW-Authenticate": SESSION_HEADER},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body("not_found", exc.message))

    @app.exception_handler(SubmitInProgressError)
    async def handle_submit_in_progress(request: Request, exc: SubmitInProgressError):
        return JSONResponse(status_code=409, content=error_body("submit_in_progress", exc.message))

    @app.exception_handler(EmptyResultError)
    async def handle_empty_result(request: Request, exc: EmptyResultError):
        return JSONResponse(status_code=422, content=error_body(exc.code, exc.message))

    @app.exception_handler(StoreFailure)
    async def handle_store_failure(request: Request, exc: StoreFailure):
        logger.error("[%s] Store failure: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(CapabilityFailure)
    async def handle_capability_failure(request: Request, exc: CapabilityFailure):
        logger.error("[%s] Capability failure (%s): %s", request_id_var.get(""), exc.capability, exc.message)
        return JSONResponse(
            status_code=503,
            content=error_body("capability_failure", exc.message, {"capability": exc.capability}),
        )

    @app.exception_handler(ScribeJournalError)
    async def handle_application_error(request: Request, exc: ScribeJournalError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    capability: Optional[VisionLanguageService] = None,
    store: Optional[JournalStore] = None,
    engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: Explicit configuration; read from the environment if omitted.
        capability: Transcription/summarization client; GeminiService if omitted.
        store: Journal store; built on `engine` if omitted.
        engine: Async engine; built from settings.database_url if omitted.
    """
    settings = settings or Settings()
    engine = engine or create_engine(settings)
    if store is None:
        store = JournalStore(create_session_factory(engine))
    if capability is None:
        capability = GeminiService(settings)
    file_service = FileService(settings.max_file_size, settings.max_files_per_upload)

    app = FastAPI(
        title="ScribeJournal API",
        description=(
            "Handwritten journal backend: upload page images, get transcriptions and "
            "an automatic title, save entries, and generate insights across your journal."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.capability = capability
    app.state.sessions = SessionRegistry(
        capability=capability,
        store=store,
        file_service=file_service,
        ttl_seconds=settings.session_ttl_seconds,
    )
    app.state.started_at = time.time()

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "WWW-Authenticate"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(sessions.router)
    app.include_router(drafts.router)
    app.include_router(entries.router)
    app.include_router(insights.router)
    app.include_router(transcriptions.router)
    app.include_router(health.router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app on BACKEND_HOST:BACKEND_PORT."""
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        "scribejournal.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
