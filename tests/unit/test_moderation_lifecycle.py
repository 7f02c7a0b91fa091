from __future__ import annotations

import logging

import pytest

from campusmod.moderation.domain.data_service import InMemoryDataService
from campusmod.moderation.domain.lifecycle import ReportLifecycle
from campusmod.moderation.domain.models import ReportActionType, ReportStatus


async def _report(data: InMemoryDataService, *, status: str = "pending") -> str:
    await data.insert("posts", [{"id": "post-1", "content": "you absolute jerk", "author_id": "author-1"}])
    rows = await data.insert(
        "reports",
        [{"post_id": "post-1", "reporter_id": "reporter-1", "category": "harassment", "status": status}],
    )
    return rows[0]["id"]


def _status(data: InMemoryDataService, report_id: str) -> str:
    return next(row["status"] for row in data.tables["reports"] if row["id"] == report_id)


@pytest.mark.asyncio
async def test_dismiss_sets_status_and_records_one_action(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service)

    updated = await lifecycle.dismiss(report_id, moderator_id="faculty-1", notes="not a violation")

    assert updated is not None
    assert updated.status is ReportStatus.DISMISSED
    assert _status(data_service, report_id) == "dismissed"
    actions = await lifecycle.actions(report_id)
    assert len(actions) == 1
    assert actions[0].action is ReportActionType.DISMISS
    assert actions[0].moderator_id == "faculty-1"
    assert actions[0].notes == "not a violation"
    # post untouched
    assert len(data_service.tables["posts"]) == 1


@pytest.mark.asyncio
async def test_delete_post_removes_post_and_keeps_report(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service)

    updated = await lifecycle.delete_post(report_id, "post-1", moderator_id="faculty-1")

    assert updated is not None and updated.status is ReportStatus.DELETED
    assert data_service.tables["posts"] == []
    assert _status(data_service, report_id) == "deleted"
    actions = await lifecycle.actions(report_id)
    assert [a.action for a in actions] == [ReportActionType.DELETE_POST]
    assert actions[0].notes == ""


@pytest.mark.asyncio
async def test_warn_records_action_and_sets_status(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service)

    updated = await lifecycle.warn(report_id, moderator_id="faculty-1", notes="first warning")

    assert updated is not None and updated.status is ReportStatus.WARNED
    assert _status(data_service, report_id) == "warned"
    assert [a.action for a in await lifecycle.actions(report_id)] == [ReportActionType.WARN_USER]
    assert len(data_service.tables["posts"]) == 1


@pytest.mark.asyncio
async def test_legacy_open_report_can_be_actioned(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service, status="open")
    updated = await ReportLifecycle(data_service).dismiss(report_id, moderator_id="faculty-1")
    assert updated is not None and updated.status is ReportStatus.DISMISSED


@pytest.mark.asyncio
async def test_closed_reports_are_left_alone(
    data_service: InMemoryDataService, caplog: pytest.LogCaptureFixture
) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service)
    await lifecycle.dismiss(report_id, moderator_id="faculty-1")

    with caplog.at_level(logging.WARNING):
        result = await lifecycle.delete_post(report_id, "post-1", moderator_id="faculty-2")

    assert result is not None and result.status is ReportStatus.DISMISSED
    assert _status(data_service, report_id) == "dismissed"
    assert len(data_service.tables["posts"]) == 1
    assert len(await lifecycle.actions(report_id)) == 1
    assert "ignoring action on closed report" in caplog.text


@pytest.mark.asyncio
async def test_closed_reports_can_be_reopened_when_allowed(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service, allow_terminal_transitions=True)
    await lifecycle.dismiss(report_id, moderator_id="faculty-1")

    updated = await lifecycle.warn(report_id, moderator_id="faculty-1")

    assert updated is not None and updated.status is ReportStatus.WARNED
    assert [a.action for a in await lifecycle.actions(report_id)] == [
        ReportActionType.DISMISS,
        ReportActionType.WARN_USER,
    ]


@pytest.mark.asyncio
async def test_unknown_report_returns_none(data_service: InMemoryDataService) -> None:
    lifecycle = ReportLifecycle(data_service)
    assert await lifecycle.dismiss("missing", moderator_id="faculty-1") is None
    assert await lifecycle.warn("missing", moderator_id="faculty-1") is None
    assert data_service.tables["report_actions"] == []


@pytest.mark.asyncio
async def test_audit_failure_still_returns_updated_report(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    data_service.fail("report_actions", "insert")
    updated = await ReportLifecycle(data_service).dismiss(report_id, moderator_id="faculty-1")
    assert updated is not None and updated.status is ReportStatus.DISMISSED
    assert _status(data_service, report_id) == "dismissed"


@pytest.mark.asyncio
async def test_status_failure_returns_none_but_keeps_other_writes(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    data_service.fail("reports", "update")
    lifecycle = ReportLifecycle(data_service)

    assert await lifecycle.delete_post(report_id, "post-1", moderator_id="faculty-1") is None

    assert data_service.tables["posts"] == []
    assert _status(data_service, report_id) == "pending"
    assert [a.action for a in await lifecycle.actions(report_id)] == [ReportActionType.DELETE_POST]


@pytest.mark.asyncio
async def test_post_delete_failure_still_closes_report(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    data_service.fail("posts", "delete")
    updated = await ReportLifecycle(data_service).delete_post(report_id, "post-1", moderator_id="faculty-1")
    assert updated is not None and updated.status is ReportStatus.DELETED
    assert len(data_service.tables["posts"]) == 1


@pytest.mark.asyncio
async def test_actions_fail_soft(data_service: InMemoryDataService) -> None:
    data_service.fail("report_actions", "select")
    assert await ReportLifecycle(data_service).actions("anything") == []


@pytest.mark.asyncio
async def test_actions_skip_rows_that_do_not_parse(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service)
    lifecycle = ReportLifecycle(data_service)
    await lifecycle.warn(report_id, moderator_id="faculty-1")
    await data_service.insert("report_actions", [{"report_id": report_id, "faculty_id": "f", "action": "ban_user"}])

    actions = await lifecycle.actions(report_id)

    assert [a.action for a in actions] == [ReportActionType.WARN_USER]


@pytest.mark.asyncio
async def test_transition_on_unreadable_report_writes_nothing(data_service: InMemoryDataService) -> None:
    report_id = await _report(data_service, status="resolved")
    lifecycle = ReportLifecycle(data_service)

    assert await lifecycle.delete_post(report_id, "post-1", moderator_id="faculty-1") is None
    assert await lifecycle.dismiss(report_id, moderator_id="faculty-1") is None

    assert _status(data_service, report_id) == "resolved"
    assert len(data_service.tables["posts"]) == 1
    assert data_service.tables["report_actions"] == []
