"""Idempotent "content flagged" notifications for post authors."""

from __future__ import annotations

import logging
from typing import Sequence

from campusmod.moderation.domain.data_service import DataService, DataServiceError, UniqueConstraintError
from campusmod.moderation.domain.models import FLAGGED_NOTIFICATION_TYPE, BannedWord, EnrichedReport
from campusmod.obs import metrics

logger = logging.getLogger(__name__)

TABLE = "notifications"


class ModerationNotifier:
    """Tells a post's author their content matched banned words, once per post.

    Scans run every time the dashboard renders, so this is called repeatedly
    for the same post. The existence check keeps the common path to a single
    read; the unique index on (post_id, type) settles concurrent callers that
    both pass the check.
    """

    def __init__(self, data: DataService, *, notification_type: str = FLAGGED_NOTIFICATION_TYPE) -> None:
        self._data = data
        self.notification_type = notification_type

    async def notify_author_if_flagged(self, report: EnrichedReport, matches: Sequence[BannedWord]) -> bool:
        post = report.post
        if post is None or not post.author_id or not matches:
            return False
        filters = {"post_id": post.id, "type": self.notification_type}
        try:
            existing = await self._data.select(TABLE, filters, columns=("id",), limit=1)
        except DataServiceError:
            metrics.data_error(TABLE, "select")
            metrics.notification_result("error")
            logger.exception("failed to check flagged notification", extra={"post_id": post.id})
            return False
        if existing:
            metrics.notification_result("duplicate")
            return False
        row = {
            "user_id": post.author_id,
            "actor_id": None,
            "type": self.notification_type,
            "post_id": post.id,
            "is_read": False,
        }
        try:
            await self._data.insert(TABLE, [row])
        except UniqueConstraintError:
            metrics.notification_result("duplicate")
            logger.info("flagged notification already exists", extra={"post_id": post.id})
            return False
        except DataServiceError:
            metrics.data_error(TABLE, "insert")
            metrics.notification_result("error")
            logger.exception("failed to create flagged notification", extra={"post_id": post.id})
            return False
        metrics.notification_result("created")
        logger.info(
            "notified author of flagged post",
            extra={"post_id": post.id, "author_id": post.author_id, "match_count": len(matches)},
        )
        return True
