"""
ScribeJournal Backend — Google Gemini Capability Client
=========================================================

What:  Concrete VisionLanguageService backed by Google Gemini.
How:   One GenerativeModel per prompt family (transcription, title, insights),
       each call timed and logged with a short call id. SDK errors and
       responses without accessible text become CapabilityFailure.
Who:   Built once by create_app() from the explicit Settings object and shared
       by every upload session.

Failure policy:
    No retries and no fallback provider. The caller decides how a failure
    degrades: an error sentinel on one page, a silently empty title, or a
    blocking message in place of insights.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List

import google.generativeai as genai

from scribejournal.config import PLACEHOLDER_API_KEY, Settings
from scribejournal.exceptions import CapabilityFailure
from scribejournal.services.capability_base import SummaryMode, VisionLanguageService

logger = logging.getLogger(__name__)


class GeminiService(VisionLanguageService):
    """
    Google Gemini implementation of the capability contract.

    Generation settings per call family:
        transcribe   max 500 tokens, temperature 0
        title        max 50 tokens,  temperature 0.7
        insights     max 250 tokens, temperature 0.7
    """

    TRANSCRIBE_PROMPT = (
        "Please transcribe this text. Correct any spelling mistakes and grammatical "
        "errors. Do not include any introductions, explanations, or headers. "
        "Only output the corrected text."
    )

    TITLE_SYSTEM_PROMPT = (
        "You are a helpful assistant that generates concise, descriptive titles for "
        "journal entries. Keep titles under 50 characters."
    )

    INSIGHT_SYSTEM_PROMPT = (
        "You are an insightful AI that analyzes journal entries to provide helpful "
        "insights. Be concise and specific. Format your response as a bullet-pointed "
        "list, with each point on a new line starting with •. Do not use markdown "
        "formatting."
    )

    INSIGHT_PROMPTS: Dict[SummaryMode, str] = {
        SummaryMode.THEMES: (
            "Analyze these journal entries and identify 3-5 recurring themes or patterns. "
            "List each point on a new line starting with a bullet point (•). "
            "Do not use markdown formatting."
        ),
        SummaryMode.FOCUS: (
            "Based on these journal entries, suggest 3-4 areas or activities the writer "
            "should focus on for personal growth. List each point on a new line starting "
            "with a bullet point (•). Do not use markdown formatting."
        ),
        SummaryMode.MOOD: (
            "Analyze the emotional tone of these entries and provide 3-4 insights about "
            "the writer's emotional patterns. List each point on a new line starting with "
            "a bullet point (•). Do not use markdown formatting."
        ),
        SummaryMode.GOALS: (
            "Extract and analyze any mentioned goals or aspirations, and provide 3-4 "
            "suggestions for achieving them. List each point on a new line starting with "
            "a bullet point (•). Do not use markdown formatting."
        ),
    }

    NO_TEXT_DETECTED = "No text detected"
    UNTITLED = "Untitled Entry"
    MAX_TITLE_LENGTH = 50

    def __init__(self, settings: Settings):
        if settings.gemini_api_key and settings.gemini_api_key != PLACEHOLDER_API_KEY:
            genai.configure(api_key=settings.gemini_api_key)

        self.model_name = settings.gemini_model
        self.timeout = settings.gemini_timeout
        self.model = genai.GenerativeModel(settings.gemini_model)
        self.title_model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.TITLE_SYSTEM_PROMPT,
        )
        self.insight_model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.INSIGHT_SYSTEM_PROMPT,
        )

        logger.info("GeminiService initialized with model=%s", settings.gemini_model)

    async def transcribe(self, image: bytes, mime_type: str) -> str:
        text = await self._generate(
            self.model,
            [self.TRANSCRIBE_PROMPT, {"mime_type": mime_type, "data": image}],
            capability="transcribe",
            max_output_tokens=500,
            temperature=0.0,
        )
        return text or self.NO_TEXT_DETECTED

    async def summarize(self, text: str, mode: SummaryMode) -> str:
        if mode is SummaryMode.TITLE:
            raw = await self._generate(
                self.title_model,
                [f"Generate a title for this journal entry:\n\n{text}"],
                capability="summarize",
                max_output_tokens=50,
                temperature=0.7,
            )
            return self._clean_title(raw)

        prompt = self.INSIGHT_PROMPTS[mode]
        return await self._generate(
            self.insight_model,
            [f"{prompt}\n\nJournal entries:\n{text}"],
            capability="summarize",
            max_output_tokens=250,
            temperature=0.7,
        )

    def _clean_title(self, raw: str) -> str:
        """Strips wrapping quotes and caps the length; blank output becomes "Untitled Entry"."""
        title = raw.strip().strip('"').strip("'").strip()
        if not title:
            return self.UNTITLED
        return title[: self.MAX_TITLE_LENGTH].rstrip()

    async def _generate(
        self,
        model: Any,
        parts: List[Any],
        *,
        capability: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        """
        Single request/response round trip to Gemini.

        Raises:
            CapabilityFailure: the SDK raised, or the response carries no text
                (blocked prompt, empty candidates).
        """
        call_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = await model.generate_content_async(
                parts,
                generation_config={
                    "max_output_tokens": max_output_tokens,
                    "temperature": temperature,
                },
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini %s call failed after %.0fms: %s",
                call_id,
                capability,
                duration_ms,
                str(e),
            )
            raise CapabilityFailure(
                message="The AI service could not process this request. Please try again.",
                capability=capability,
                context={"call_id": call_id, "error_type": type(e).__name__},
            )

        try:
            text = response.text
        except (ValueError, AttributeError) as e:
            # .text raises ValueError when the candidate was blocked or is empty
            logger.warning("[%s] Gemini %s response had no text: %s", call_id, capability, str(e))
            raise CapabilityFailure(
                message="The AI service returned an unusable response.",
                capability=capability,
                context={"call_id": call_id},
            )

        if text is not None and not isinstance(text, str):
            raise CapabilityFailure(
                message="The AI service returned an unusable response.",
                capability=capability,
                context={"call_id": call_id, "response_type": type(text).__name__},
            )

        extracted = (text or "").strip()
        logger.info(
            "[%s] Gemini %s completed in %.0fms, %d chars",
            call_id,
            capability,
            (time.time() - start_time) * 1000,
            len(extracted),
        )
        return extracted

    async def health_check(self) -> bool:
        """
        Lists available models (no token cost) to verify key and connectivity.
        """
        try:
            models = await asyncio.to_thread(lambda: list(genai.list_models()))
            target = f"models/{self.model_name}"
            if target not in [m.name for m in models]:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
