"""
ScribeJournal Backend — Insight Engine
========================================

What:  Turns the owner's whole journal into a short list of insights
       (recurring themes, focus suggestions, mood analysis, goal tracking).
How:   Fetch entries once per view and cache them, join their content with
       the page separator, call `summarize(content, mode)`, then parse the
       bullet list strictly into InsightItem tuples.
Who:   One InsightEngine per upload session; used by the insights routes.

Failure modes (all reported, none hidden):
    NoEntriesError     store returned zero entries (no summarize call is made)
    NoInsightsError    the summary parsed to zero items
    CapabilityFailure  the store or the summarizer failed
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from scribejournal.exceptions import NoEntriesError, NoInsightsError, ValidationError
from scribejournal.services.capability_base import (
    INSIGHT_MODES,
    SummaryMode,
    VisionLanguageService,
)
from scribejournal.services.journal_store import JournalStore
from scribejournal.services.page_collection import PAGE_SEPARATOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsightModeInfo:
    mode: SummaryMode
    title: str
    description: str


INSIGHT_MODE_INFO: Dict[SummaryMode, InsightModeInfo] = {
    SummaryMode.THEMES: InsightModeInfo(
        SummaryMode.THEMES,
        "Recurring Themes",
        "Identify patterns and common themes across your journal entries",
    ),
    SummaryMode.FOCUS: InsightModeInfo(
        SummaryMode.FOCUS,
        "Focus Suggestions",
        "Get recommendations for personal growth and development",
    ),
    SummaryMode.MOOD: InsightModeInfo(
        SummaryMode.MOOD,
        "Mood Analysis",
        "Understand your emotional patterns and trends",
    ),
    SummaryMode.GOALS: InsightModeInfo(
        SummaryMode.GOALS,
        "Goal Tracking",
        "Track progress on your goals and get achievement suggestions",
    ),
}


# ══════════════════════════════════════════════════════════════════════════
# Parser
# ══════════════════════════════════════════════════════════════════════════

# Leading bullets ("•", "-", "–", "*", "+") or list numbers ("1.", "2)")
_LEADING_MARKER = re.compile(r"^\s*(?:[•\-–*+]+|\d+[.)])\s*")
_HEADING_MARKER = re.compile(r"^#+\s*")
_EMPHASIS_MARKERS = re.compile(r"[*`]+")
_LABEL_SEPARATOR = ": "


@dataclass(frozen=True)
class InsightItem:
    """
    One parsed insight.

    `text` is the cleaned line; `label`/`body` split it on the first ": "
    (label is None when the line has no separator).
    """

    text: str
    label: Optional[str]
    body: str


def _clean_line(line: str) -> str:
    cleaned = _HEADING_MARKER.sub("", line.strip())
    cleaned = _LEADING_MARKER.sub("", cleaned)
    return _EMPHASIS_MARKERS.sub("", cleaned).strip()


def parse_insights(raw: str) -> Tuple[InsightItem, ...]:
    """
    Parse summarizer output into insight items.

    Each non-empty line becomes one item after its bullet or number marker
    and markdown emphasis/code markers are removed.

    Raises:
        NoInsightsError: nothing survived the cleanup.
    """
    items: List[InsightItem] = []
    for line in (raw or "").splitlines():
        text = _clean_line(line)
        if not text:
            continue
        label, sep, body = text.partition(_LABEL_SEPARATOR)
        if sep and label.strip() and body.strip():
            items.append(InsightItem(text=text, label=label.strip(), body=body.strip()))
        else:
            items.append(InsightItem(text=text, label=None, body=text))
    if not items:
        raise NoInsightsError(context={"raw_length": len(raw or "")})
    return tuple(items)


# ══════════════════════════════════════════════════════════════════════════
# Engine
# ══════════════════════════════════════════════════════════════════════════


class InsightEngine:
    """
    Per-view insight orchestration with a fetch-once entry cache.

    Switching modes reuses the cache. `invalidate()` drops it: a client opening
    a new insights view asks for that, and so does a successful submission in
    the same session. An empty journal is never cached, so entries saved
    elsewhere show up on the next request.
    """

    def __init__(self, capability: VisionLanguageService, store: JournalStore, owner_id: str):
        self._capability = capability
        self._store = store
        self.owner_id = owner_id
        self._entries: Optional[list] = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> bool:
        return self._entries is not None

    def invalidate(self) -> None:
        self._entries = None

    async def _load_entries(self) -> list:
        async with self._lock:
            if self._entries is not None:
                return self._entries
            entries = await self._store.list_journal_entries(self.owner_id)
            if entries:
                self._entries = entries
                logger.debug("Insight cache filled with %d entries for owner %s", len(entries), self.owner_id)
            return entries

    async def generate(self, mode: SummaryMode) -> Tuple[InsightItem, ...]:
        """
        Run one insight mode over the owner's journal.

        Raises:
            ValidationError: `mode` is not an insight mode (e.g. TITLE).
            NoEntriesError: the owner has no entries.
            NoInsightsError: the summary contained no parsable items.
            CapabilityFailure: store or summarizer failure.
        """
        if mode not in INSIGHT_MODES:
            raise ValidationError(
                message=f"'{mode.value}' is not an insight type.",
                field="mode",
            )

        entries = await self._load_entries()
        if not entries:
            raise NoEntriesError()

        content = PAGE_SEPARATOR.join(entry.content for entry in entries)
        raw = await self._capability.summarize(content, mode)
        items = parse_insights(raw)
        logger.info(
            "Generated %d %s insight(s) from %d entries for owner %s",
            len(items),
            mode.value,
            len(entries),
            self.owner_id,
        )
        return items
