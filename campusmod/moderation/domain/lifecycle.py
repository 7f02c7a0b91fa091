"""Moderator actions over the report state machine.

A report starts ``pending`` and moves to one of the terminal states
``dismissed``, ``deleted`` or ``warned``. Each action is a short sequence of
independent writes (post delete, status update, audit insert). A failed step
is logged and the remaining steps still run; nothing is rolled back.

Commands return the updated ``Report`` so callers can merge it into whatever
list they cache, or ``None`` when the report is unknown or its status could
not be written.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from campusmod.moderation.domain.data_service import DataService, DataServiceError
from campusmod.moderation.domain.models import (
    Report,
    ReportAction,
    ReportActionType,
    ReportStatus,
    parse_rows,
)
from campusmod.obs import metrics

logger = logging.getLogger(__name__)

REPORTS_TABLE = "reports"
ACTIONS_TABLE = "report_actions"
POSTS_TABLE = "posts"


class ReportLifecycle:
    def __init__(self, data: DataService, *, allow_terminal_transitions: bool = False) -> None:
        self._data = data
        self.allow_terminal_transitions = allow_terminal_transitions

    async def dismiss(self, report_id: str, *, moderator_id: Optional[str], notes: str = "") -> Report | None:
        report = await self._load_for_transition(report_id, ReportActionType.DISMISS)
        if self._blocked(report):
            return report
        updated = await self._set_status(report, ReportStatus.DISMISSED, ReportActionType.DISMISS)
        await self._record_action(report_id, ReportActionType.DISMISS, moderator_id, notes)
        return self._finish(updated, ReportActionType.DISMISS)

    async def delete_post(
        self,
        report_id: str,
        post_id: str,
        *,
        moderator_id: Optional[str],
        notes: str = "",
    ) -> Report | None:
        report = await self._load_for_transition(report_id, ReportActionType.DELETE_POST)
        if self._blocked(report):
            return report
        # Hard delete: the post is gone for good, the report row stays as the audit trail.
        try:
            await self._data.delete(POSTS_TABLE, {"id": post_id})
        except DataServiceError:
            metrics.data_error(POSTS_TABLE, "delete")
            logger.exception("failed to delete reported post", extra={"report_id": report_id, "post_id": post_id})
        updated = await self._set_status(report, ReportStatus.DELETED, ReportActionType.DELETE_POST)
        await self._record_action(report_id, ReportActionType.DELETE_POST, moderator_id, notes)
        return self._finish(updated, ReportActionType.DELETE_POST)

    async def warn(self, report_id: str, *, moderator_id: Optional[str], notes: str = "") -> Report | None:
        report = await self._load_for_transition(report_id, ReportActionType.WARN_USER)
        if self._blocked(report):
            return report
        await self._record_action(report_id, ReportActionType.WARN_USER, moderator_id, notes)
        updated = await self._set_status(report, ReportStatus.WARNED, ReportActionType.WARN_USER)
        return self._finish(updated, ReportActionType.WARN_USER)

    async def actions(self, report_id: str) -> list[ReportAction]:
        try:
            rows = await self._data.select(ACTIONS_TABLE, {"report_id": report_id}, order_by="created_at")
        except DataServiceError:
            metrics.data_error(ACTIONS_TABLE, "select")
            logger.exception("failed to fetch report actions", extra={"report_id": report_id})
            return []
        return parse_rows(ReportAction.from_row, rows)

    def _blocked(self, report: Report | None) -> bool:
        if report is None:
            return True
        return report.status.is_terminal and not self.allow_terminal_transitions

    async def _load_for_transition(self, report_id: str, action: ReportActionType) -> Report | None:
        try:
            rows = await self._data.select(REPORTS_TABLE, {"id": report_id}, limit=1)
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "select")
            metrics.report_transition(action.value, "error")
            logger.exception("failed to load report", extra={"report_id": report_id})
            return None
        if not rows:
            metrics.report_transition(action.value, "not_found")
            logger.warning("report not found", extra={"report_id": report_id, "action": action.value})
            return None
        parsed = parse_rows(Report.from_row, rows)
        if not parsed:
            metrics.report_transition(action.value, "error")
            return None
        report = parsed[0]
        if report.status.is_terminal and not self.allow_terminal_transitions:
            metrics.report_transition(action.value, "rejected")
            logger.warning(
                "ignoring action on closed report",
                extra={"report_id": report_id, "action": action.value, "status": report.status.value},
            )
        return report

    async def _set_status(self, report: Report, status: ReportStatus, action: ReportActionType) -> Report | None:
        try:
            await self._data.update(REPORTS_TABLE, {"id": report.id}, {"status": status.value})
        except DataServiceError:
            metrics.data_error(REPORTS_TABLE, "update")
            logger.exception(
                "failed to update report status",
                extra={"report_id": report.id, "action": action.value, "status": status.value},
            )
            return None
        return replace(report, status=status)

    async def _record_action(
        self,
        report_id: str,
        action: ReportActionType,
        moderator_id: Optional[str],
        notes: str,
    ) -> None:
        row = {
            "report_id": report_id,
            "faculty_id": moderator_id,
            "action": action.value,
            "notes": notes or "",
        }
        try:
            await self._data.insert(ACTIONS_TABLE, [row])
        except DataServiceError:
            metrics.data_error(ACTIONS_TABLE, "insert")
            logger.exception("failed to record report action", extra={"report_id": report_id, "action": action.value})

    def _finish(self, updated: Report | None, action: ReportActionType) -> Report | None:
        metrics.report_transition(action.value, "applied" if updated is not None else "error")
        return updated
