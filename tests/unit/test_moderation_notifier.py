from __future__ import annotations

import asyncio
import logging

import pytest

from campusmod.moderation.domain.data_service import InMemoryDataService
from campusmod.moderation.domain.models import (
    BannedWord,
    EnrichedReport,
    Notification,
    PostSummary,
    Report,
    ReportCategory,
    ReportStatus,
)
from campusmod.moderation.domain.notifier import ModerationNotifier

MATCHES = [BannedWord(id="w1", word="damn", category="profanity", created_by="mod")]


def _entry(post: PostSummary | None) -> EnrichedReport:
    report = Report(
        id="report-1",
        post_id=post.id if post else "post-x",
        reporter_id="reporter-1",
        category=ReportCategory.OTHER,
        description=None,
        status=ReportStatus.PENDING,
    )
    return EnrichedReport(report=report, post=post)


def _flagged_rows(data: InMemoryDataService) -> list[dict]:
    return [row for row in data.tables["notifications"] if row["type"] == "banned_word_detected"]


@pytest.mark.asyncio
async def test_repeated_scans_create_one_notification(data_service: InMemoryDataService) -> None:
    notifier = ModerationNotifier(data_service)
    entry = _entry(PostSummary(id="post-1", content="damn", author_id="author-1"))

    results = [await notifier.notify_author_if_flagged(entry, MATCHES) for _ in range(5)]

    assert results == [True, False, False, False, False]
    rows = _flagged_rows(data_service)
    assert len(rows) == 1
    notification = Notification.from_row(rows[0])
    assert notification.user_id == "author-1"
    assert notification.post_id == "post-1"
    assert notification.actor_id is None
    assert notification.is_read is False


@pytest.mark.asyncio
async def test_concurrent_scans_notify_once(data_service: InMemoryDataService) -> None:
    notifier = ModerationNotifier(data_service)
    entry = _entry(PostSummary(id="post-1", content="damn", author_id="author-1"))

    results = await asyncio.gather(*(notifier.notify_author_if_flagged(entry, MATCHES) for _ in range(4)))

    assert results.count(True) == 1
    assert len(_flagged_rows(data_service)) == 1


class _StaleReadDataService(InMemoryDataService):
    """Answers every notification lookup with nothing, as a lagging replica would."""

    async def select(self, table, filters=None, **kwargs):
        if table == "notifications":
            return []
        return await super().select(table, filters, **kwargs)


@pytest.mark.asyncio
async def test_unique_index_settles_a_lost_race(caplog: pytest.LogCaptureFixture) -> None:
    data = _StaleReadDataService.with_moderation_constraints()
    notifier = ModerationNotifier(data)
    entry = _entry(PostSummary(id="post-1", content="damn", author_id="author-1"))

    assert await notifier.notify_author_if_flagged(entry, MATCHES) is True
    with caplog.at_level(logging.INFO):
        assert await notifier.notify_author_if_flagged(entry, MATCHES) is False
    assert "flagged notification already exists" in caplog.text
    assert len(_flagged_rows(data)) == 1


@pytest.mark.asyncio
async def test_separate_posts_each_get_a_notification(data_service: InMemoryDataService) -> None:
    notifier = ModerationNotifier(data_service)
    for post_id in ("post-1", "post-2"):
        entry = _entry(PostSummary(id=post_id, content="damn", author_id="author-1"))
        assert await notifier.notify_author_if_flagged(entry, MATCHES) is True
    assert len(_flagged_rows(data_service)) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "post, matches",
    [
        (None, MATCHES),
        (PostSummary(id="post-1", content="damn", author_id=None), MATCHES),
        (PostSummary(id="post-1", content="fine", author_id="author-1"), []),
    ],
)
async def test_noop_without_author_or_matches(data_service: InMemoryDataService, post, matches) -> None:
    notifier = ModerationNotifier(data_service)
    assert await notifier.notify_author_if_flagged(_entry(post), matches) is False
    assert data_service.tables["notifications"] == []


@pytest.mark.asyncio
async def test_other_notification_types_do_not_suppress(data_service: InMemoryDataService) -> None:
    await data_service.insert(
        "notifications",
        [{"user_id": "author-1", "type": "like", "post_id": "post-1", "is_read": False}],
    )
    notifier = ModerationNotifier(data_service)
    entry = _entry(PostSummary(id="post-1", content="damn", author_id="author-1"))
    assert await notifier.notify_author_if_flagged(entry, MATCHES) is True


@pytest.mark.asyncio
async def test_transport_errors_are_swallowed(data_service: InMemoryDataService) -> None:
    notifier = ModerationNotifier(data_service)
    entry = _entry(PostSummary(id="post-1", content="damn", author_id="author-1"))
    data_service.fail("notifications", "select")
    assert await notifier.notify_author_if_flagged(entry, MATCHES) is False
    data_service.fail_ops.clear()
    data_service.fail("notifications", "insert")
    assert await notifier.notify_author_if_flagged(entry, MATCHES) is False
    assert data_service.tables["notifications"] == []
