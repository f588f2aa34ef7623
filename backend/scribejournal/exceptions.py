"""
ScribeJournal Backend — Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for every failure the journal can report.
How:   Each exception carries a user-facing message and an optional context
       dict (logged, never returned verbatim for server-side failures).
       Global handlers in main.py map them to HTTP responses.
Who:   Raised by services, the draft pipeline and the session registry.

Exception Hierarchy:
    ScribeJournalError (base)
    ├── ValidationError          → 400 (bad file type, empty title, nothing to submit)
    ├── NotFoundError            → 404
    ├── AuthenticationError      → 401
    │   ├── NotAuthenticatedError    (no session token, or an unknown one)
    │   └── SessionExpiredError      (token known but past its expiry)
    ├── SubmitInProgressError    → 409 (double-submit guard)
    ├── CapabilityFailure        → 503 (transcription / summarization failed)
    │   └── StoreFailure         → 500 (journal store call failed)
    └── EmptyResultError         → 422
        ├── NoEntriesError           (nothing to analyze)
        └── NoInsightsError          (summary produced no parsable items)
"""

from typing import Any, Dict, Optional


class ScribeJournalError(Exception):
    """
    Base exception for all ScribeJournal application errors.

    Attributes:
        message:  User-facing error description
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ScribeJournalError):
    """
    Raised when client input fails validation, always before any remote call.

    Example response:
        {
            "error": "validation_error",
            "message": "File type '.pdf' is not supported. Allowed types: .bmp, .gif, ...",
            "details": {"field": "files"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(ScribeJournalError):
    """Raised when a requested entry, page or session does not exist for this owner."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class AuthenticationError(ScribeJournalError):
    """Base for every "who is calling?" failure."""

    code = "not_authenticated"


class NotAuthenticatedError(AuthenticationError):
    """No session token was sent, or the token was never issued by this server."""

    code = "not_authenticated"

    def __init__(
        self,
        message: str = "No authenticated user. Please sign in.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SessionExpiredError(AuthenticationError):
    """The session existed but outlived its sliding expiry; its draft is gone."""

    code = "session_expired"

    def __init__(
        self,
        message: str = "Your session has expired. Please sign in again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class SubmitInProgressError(ScribeJournalError):
    """
    Raised when a submit is triggered while another submit for the same
    draft is still in flight. The second trigger is rejected, never queued.
    """

    def __init__(
        self,
        message: str = "This journal entry is already being saved.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CapabilityFailure(ScribeJournalError):
    """
    Raised when an external capability call fails.

    Attributes:
        capability: "transcribe", "summarize" or "store"
    """

    def __init__(
        self,
        message: str = "The AI service is temporarily unavailable",
        capability: str = "summarize",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["capability"] = capability
        super().__init__(message=message, context=ctx)
        self.capability = capability


class StoreFailure(CapabilityFailure):
    """
    Raised when the journal store fails a create or list call.

    The message returned to the client is generic; SQL details live in
    `context` and are only logged.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, capability="store", context=context)


class EmptyResultError(ScribeJournalError):
    """An operation completed but produced nothing to show; reported, not hidden."""

    code = "empty_result"


class NoEntriesError(EmptyResultError):
    code = "no_entries"

    def __init__(
        self,
        message: str = "No journal entries found. Start by adding some entries!",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NoInsightsError(EmptyResultError):
    code = "no_insights"

    def __init__(
        self,
        message: str = "No insights were generated from the analysis",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
