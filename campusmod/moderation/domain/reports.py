"""Report persistence, profile enrichment and the live report feed."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from campusmod.moderation.domain.data_service import DataService, DataServiceError
from campusmod.moderation.domain.models import (
    EnrichedReport,
    PostSummary,
    ProfileSummary,
    Report,
    ReportCategory,
    ReportStatus,
    parse_rows,
)
from campusmod.obs import metrics

logger = logging.getLogger(__name__)

REPORTS_TABLE = "reports"
POSTS_TABLE = "posts"
PROFILES_TABLE = "profiles"

POST_COLUMNS = ("id", "content", "author_id", "created_at")
PROFILE_COLUMNS = ("id", "display_name", "username", "avatar_url", "role", "user_type")

InsertCallback = Callable[[EnrichedReport], Union[None, Awaitable[None]]]


class ReportSubscription:
    """Handle for a running report feed; ``close()`` stops it and releases the stream."""

    def __init__(self, task: asyncio.Task, stream: Any) -> None:
        self._task = task
        self._stream = stream

    @property
    def active(self) -> bool:
        return not self._task.done()

    async def close(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        # A task cancelled before its first step never reaches its own cleanup.
        await _close_stream(self._stream)


class ReportRepository:
    """Loads reports for the moderator dashboard and keeps an in-memory list.

    Profiles and posts are fetched in separate batched queries and joined here
    by id rather than relying on storage-side joins.
    """

    def __init__(self, data: DataService) -> None:
        self._data = data
        self.reports: list[EnrichedReport] = []

    async def list(self) -> list[EnrichedReport]:  # noqa: A003 - dashboard vocabulary
        start = time.perf_counter()
        try:
            rows = await self._data.select(REPORTS_TABLE, order_by="created_at", descending=True)
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "select")
            logger.exception("failed to fetch reports")
            self.reports = []
            return []
        reports = parse_rows(Report.from_row, rows)
        posts = await self._fetch_posts({report.post_id for report in reports if report.post_id})
        profile_ids = {report.reporter_id for report in reports if report.reporter_id}
        profile_ids.update(post.author_id for post in posts.values() if post.author_id)
        profiles = await self._fetch_profiles(profile_ids)

        enriched: list[EnrichedReport] = []
        for report in reports:
            post = posts.get(report.post_id)
            enriched.append(
                EnrichedReport(
                    report=report,
                    reporter=profiles.get(report.reporter_id),
                    post=post,
                    post_author=profiles.get(post.author_id) if post and post.author_id else None,
                )
            )
        self.reports = enriched
        metrics.MOD_REPORT_LIST_LATENCY_MS.observe((time.perf_counter() - start) * 1000)
        return list(enriched)

    async def get(self, report_id: str) -> Report | None:
        try:
            rows = await self._data.select(REPORTS_TABLE, {"id": report_id}, limit=1)
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "select")
            logger.exception("failed to fetch report", extra={"report_id": report_id})
            return None
        parsed = parse_rows(Report.from_row, rows)
        return parsed[0] if parsed else None

    async def submit(
        self,
        *,
        post_id: Optional[str],
        reporter_id: Optional[str],
        category: Optional[Union[str, ReportCategory]],
        description: Optional[str] = None,
    ) -> Report | None:
        if not post_id or not reporter_id or not category:
            return None
        parsed = category if isinstance(category, ReportCategory) else ReportCategory.parse(category)
        payload = {
            "post_id": post_id,
            "reporter_id": reporter_id,
            "category": parsed.value,
            "description": (description or "").strip() or None,
            "status": ReportStatus.PENDING.value,
        }
        try:
            rows = await self._data.insert(REPORTS_TABLE, [payload])
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "insert")
            logger.exception("failed to submit report", extra={"post_id": post_id, "reporter_id": reporter_id})
            return None
        metrics.MOD_REPORTS_TOTAL.labels(category=parsed.value).inc()
        return Report.from_row(rows[0]) if rows else None

    def subscribe(self, on_insert: Optional[InsertCallback] = None) -> ReportSubscription:
        """Prepend newly inserted reports to ``reports`` as they arrive.

        Live rows are not enriched; the next ``list()`` call fills in profiles
        and posts.
        """
        stream = self._data.subscribe(REPORTS_TABLE, "INSERT")
        task = asyncio.create_task(self._consume(stream, on_insert), name="moderation-report-feed")
        return ReportSubscription(task, stream)

    async def _consume(self, stream: Any, on_insert: Optional[InsertCallback]) -> None:
        try:
            async for row in stream:
                try:
                    entry = EnrichedReport(report=Report.from_row(row))
                except (KeyError, ValueError):
                    logger.warning("ignoring malformed report event", extra={"row_id": row.get("id")})
                    continue
                self.reports.insert(0, entry)
                if on_insert is not None:
                    result = on_insert(entry)
                    if asyncio.iscoroutine(result):
                        await result
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "subscribe")
            logger.exception("report feed stopped")
        finally:
            await _close_stream(stream)

    def merge(self, updated: Report) -> None:
        for entry in self.reports:
            if entry.report.id == updated.id:
                entry.report.status = updated.status

    async def _fetch_posts(self, post_ids: set[str]) -> dict[str, PostSummary]:
        if not post_ids:
            return {}
        try:
            rows = await self._data.select(POSTS_TABLE, {"id": sorted(post_ids)}, columns=POST_COLUMNS)
        except DataServiceError:
            metrics.data_error(POSTS_TABLE, "select")
            logger.exception("failed to fetch reported posts")
            return {}
        posts = parse_rows(PostSummary.from_row, rows)
        return {post.id: post for post in posts}

    async def _fetch_profiles(self, profile_ids: set[str]) -> dict[str, ProfileSummary]:
        if not profile_ids:
            return {}
        try:
            rows = await self._data.select(PROFILES_TABLE, {"id": sorted(profile_ids)}, columns=PROFILE_COLUMNS)
        except DataServiceError:
            metrics.data_error(PROFILES_TABLE, "select")
            logger.exception("failed to fetch report profiles")
            return {}
        profiles = parse_rows(ProfileSummary.from_row, rows)
        return {profile.id: profile for profile in profiles}


def filter_by_status(
    reports: Iterable[EnrichedReport],
    status: Optional[Union[str, ReportStatus]] = None,
) -> list[EnrichedReport]:
    """Keep reports in ``status``; ``None`` keeps everything."""
    if status is None or status == "":
        return list(reports)
    wanted = ReportStatus.parse(status.value if isinstance(status, ReportStatus) else status)
    return [entry for entry in reports if entry.report.status is wanted]


async def _close_stream(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()
