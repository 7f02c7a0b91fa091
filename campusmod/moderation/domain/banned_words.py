"""Curated banned-word list shared by every content scan."""

from __future__ import annotations

import logging
from typing import Optional

from campusmod.moderation.domain.data_service import DataService, DataServiceError
from campusmod.moderation.domain.models import BannedWord
from campusmod.obs import metrics

logger = logging.getLogger(__name__)

TABLE = "banned_words"


class BannedWordStore:
    """Holds a snapshot of the banned-word table.

    The snapshot is pull-based: after ``add()`` a caller has to ``reload()``
    before scans see the new word.
    """

    def __init__(self, data: DataService) -> None:
        self._data = data
        self._words: list[BannedWord] = []

    @property
    def words(self) -> list[BannedWord]:
        return list(self._words)

    async def load(self) -> list[BannedWord]:
        try:
            rows = await self._data.select(TABLE, order_by="created_at")
        except DataServiceError:
            metrics.data_error(TABLE, "select")
            logger.exception("failed to load banned words")
            self._words = []
            return []
        self._words = [BannedWord.from_row(row) for row in rows]
        return self.words

    async def reload(self) -> list[BannedWord]:
        return await self.load()

    async def add(self, word: str, category: Optional[str] = None, *, created_by: Optional[str]) -> BannedWord | None:
        cleaned = (word or "").strip()
        if not cleaned:
            return None
        # Duplicates (including case variants) are stored as-is; they only yield redundant matches.
        payload = {
            "word": cleaned,
            "category": (category or "").strip() or None,
            "created_by": created_by,
        }
        try:
            rows = await self._data.insert(TABLE, [payload])
        except DataServiceError:
            metrics.data_error(TABLE, "insert")
            logger.exception("failed to add banned word", extra={"created_by": created_by})
            return None
        metrics.MOD_BANNED_WORDS_ADDED_TOTAL.inc()
        return BannedWord.from_row(rows[0]) if rows else None
