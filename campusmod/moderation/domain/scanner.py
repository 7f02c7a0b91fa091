"""Literal banned-word detection over free text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from campusmod.moderation.domain.models import BannedWord
from campusmod.obs import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Segment:
    text: str
    highlighted: bool = False


@lru_cache(maxsize=1024)
def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)


class ContentScanner:
    """Matches text against banned words on word boundaries, case-insensitively.

    Each word is matched literally (regex metacharacters are escaped), so a
    banned "ass" does not flag "class" and "a.b" only flags the string "a.b".
    Results keep the order of the word list and each entry appears at most once
    no matter how often it occurs in the text.
    """

    def scan(self, text: Optional[str], words: Iterable[BannedWord]) -> list[BannedWord]:
        if not text:
            return []
        lowered = text.lower()
        matches: list[BannedWord] = []
        for entry in words:
            needle = (entry.word or "").strip().lower()
            if not needle:
                continue
            try:
                pattern = _word_pattern(needle)
            except re.error:
                logger.warning("skipping malformed banned word pattern", extra={"banned_word_id": entry.id})
                continue
            if pattern.search(lowered):
                matches.append(entry.copy())
                metrics.banned_word_matched(entry.category)
        metrics.scan_completed(len(matches))
        return matches

    def highlight(self, text: Optional[str], matches: Sequence[BannedWord]) -> list[Segment]:
        """Split ``text`` into plain and highlighted segments for display."""
        if not text:
            return []
        needles = sorted({m.word.strip() for m in matches if m.word and m.word.strip()}, key=len, reverse=True)
        if not needles:
            return [Segment(text)]
        alternation = "|".join(re.escape(needle) for needle in needles)
        pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)
        segments: list[Segment] = []
        cursor = 0
        for found in pattern.finditer(text):
            if found.start() > cursor:
                segments.append(Segment(text[cursor : found.start()]))
            segments.append(Segment(found.group(0), highlighted=True))
            cursor = found.end()
        if cursor < len(text):
            segments.append(Segment(text[cursor:]))
        return segments
