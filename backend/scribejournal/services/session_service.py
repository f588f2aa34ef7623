"""
ScribeJournal Backend — Upload Sessions
=========================================

What:  Server-side sessions that own one user's in-progress draft and
       insight cache.
How:   The auth provider's sign-in redirect creates a session for a verified
       owner id. The client then sends the returned token in the
       `X-Session-Token` header. Each successful lookup slides the expiry
       forward by `session_ttl_seconds`.
Who:   SessionRegistry lives on app.state; routes resolve the session through
       `routes.dependencies.get_upload_session`.

Authentication taxonomy:
    no token / token never issued   → NotAuthenticatedError
    token issued but expired        → SessionExpiredError (once; the draft is
                                      discarded and the token forgotten after
                                      another TTL period)
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from scribejournal.exceptions import NotAuthenticatedError, SessionExpiredError, ValidationError
from scribejournal.services.capability_base import VisionLanguageService
from scribejournal.services.file_service import FileService
from scribejournal.services.insight_service import InsightEngine
from scribejournal.services.journal_store import JournalStore
from scribejournal.services.submission_pipeline import SubmissionPipeline

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Token"


@dataclass
class UploadSession:
    token: str
    owner_id: str
    expires_at: datetime
    pipeline: SubmissionPipeline
    insights: InsightEngine

    async def submit(self):
        """Submit the draft and invalidate the insight cache on success."""
        entry = await self.pipeline.submit()
        self.insights.invalidate()
        return entry


class SessionRegistry:
    """
    In-memory token → UploadSession map.

    Args:
        capability: Shared capability client handed to every pipeline.
        store: Shared journal store.
        file_service: Shared upload validator.
        ttl_seconds: Sliding session lifetime.
        clock: Current UTC time (overridable in tests).
    """

    def __init__(
        self,
        capability: VisionLanguageService,
        store: JournalStore,
        file_service: FileService,
        ttl_seconds: int,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._capability = capability
        self._store = store
        self._file_service = file_service
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: Dict[str, UploadSession] = {}
        self._expired: Dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, owner_id: str) -> UploadSession:
        owner_id = (owner_id or "").strip()
        if not owner_id:
            raise ValidationError(message="An owner id is required to start a session.", field="owner_id")

        self.purge_expired()
        token = secrets.token_urlsafe(32)
        session = UploadSession(
            token=token,
            owner_id=owner_id,
            expires_at=self._clock() + self._ttl,
            pipeline=SubmissionPipeline(
                capability=self._capability,
                store=self._store,
                file_service=self._file_service,
                owner_id=owner_id,
                clock=self._clock,
            ),
            insights=InsightEngine(self._capability, self._store, owner_id),
        )
        self._sessions[token] = session
        logger.info("Upload session created for owner %s (%d active)", owner_id, len(self._sessions))
        return session

    def resolve(self, token: Optional[str]) -> UploadSession:
        """
        Look up a session and slide its expiry.

        Raises:
            NotAuthenticatedError: missing or unknown token.
            SessionExpiredError: the token belonged to a session that expired.
        """
        if not token:
            raise NotAuthenticatedError()

        now = self._clock()
        session = self._sessions.get(token)
        if session is None:
            if token in self._expired:
                raise SessionExpiredError()
            raise NotAuthenticatedError(context={"reason": "unknown_token"})

        if session.expires_at <= now:
            self._expire(token, now)
            raise SessionExpiredError()

        session.expires_at = now + self._ttl
        return session

    def close(self, token: str) -> bool:
        """Sign out. Returns False if the token was not active."""
        session = self._sessions.pop(token, None)
        if session is None:
            return False
        session.pipeline.cancel_pending()
        logger.info("Upload session closed for owner %s", session.owner_id)
        return True

    def _expire(self, token: str, now: datetime) -> None:
        session = self._sessions.pop(token)
        session.pipeline.cancel_pending()
        self._expired[token] = now
        logger.info("Upload session for owner %s expired; draft discarded", session.owner_id)

    def purge_expired(self) -> int:
        """Expire overdue sessions and forget tokens expired more than one TTL ago."""
        now = self._clock()
        overdue = [token for token, s in self._sessions.items() if s.expires_at <= now]
        for token in overdue:
            self._expire(token, now)
        for token, expired_at in list(self._expired.items()):
            if expired_at + self._ttl <= now:
                del self._expired[token]
        return len(overdue)

    def close_all(self) -> None:
        for token in list(self._sessions):
            self.close(token)
