"""
ScribeJournal Backend — Capability Client Contract
====================================================

What:  Abstract interface for the two external AI capabilities the journal uses:
       `transcribe(image) -> text` and `summarize(text, mode) -> text`.
How:   Concrete providers inherit from VisionLanguageService. The draft
       pipeline and the insight engine only ever see this contract.

Contract:
    - Failure-opaque: any call may fail; every provider-specific error is
      wrapped in CapabilityFailure
    - No internal retries; retrying is always a user-initiated repeat
    - No state is kept across calls (besides SDK clients)
"""

from abc import ABC, abstractmethod
from enum import Enum


class SummaryMode(str, Enum):
    """Prompt selector for `summarize`. TITLE feeds the draft; the rest are insights."""

    TITLE = "title"
    THEMES = "themes"
    FOCUS = "focus"
    MOOD = "mood"
    GOALS = "goals"


INSIGHT_MODES = (
    SummaryMode.THEMES,
    SummaryMode.FOCUS,
    SummaryMode.MOOD,
    SummaryMode.GOALS,
)


class VisionLanguageService(ABC):
    """
    Abstract interface for image transcription and text summarization.

    Implementations:
        - GeminiService: Google Gemini (default)
        - Test doubles in tests/conftest.py
    """

    @abstractmethod
    async def transcribe(self, image: bytes, mime_type: str) -> str:
        """
        Transcribe a handwritten page image into corrected plain text.

        Args:
            image: Raw image bytes (already validated by the upload allow-list).
            mime_type: Image MIME type, e.g. "image/png".

        Returns:
            The transcription. Never None.

        Raises:
            CapabilityFailure: Provider error or a response without text.
        """
        ...

    @abstractmethod
    async def summarize(self, text: str, mode: SummaryMode) -> str:
        """
        Summarize journal text with the prompt selected by `mode`.

        Returns:
            Raw provider output: a short title for TITLE, a bullet list otherwise.

        Raises:
            CapabilityFailure
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe used by GET /health. Never raises."""
        ...
