"""Report submission and the moderator report dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from campusmod.infra.auth import AuthenticatedUser, get_current_user, get_moderator
from campusmod.moderation.api.banned_words import BannedWordOut, get_banned_word_store_dep
from campusmod.moderation.api.scan import SegmentOut, get_scanner_dep
from campusmod.moderation.domain.banned_words import BannedWordStore
from campusmod.moderation.domain.container import get_lifecycle, get_notifier, get_report_repository
from campusmod.moderation.domain.lifecycle import ReportLifecycle
from campusmod.moderation.domain.models import (
    EnrichedReport,
    PostSummary,
    ProfileSummary,
    Report,
    ReportAction,
    ReportCategory,
)
from campusmod.moderation.domain.notifier import ModerationNotifier
from campusmod.moderation.domain.reports import ReportRepository, filter_by_status
from campusmod.moderation.domain.scanner import ContentScanner
from campusmod.obs import logging as obs_logging

router = APIRouter(prefix="/api/mod/v1/reports", tags=["moderation-reports"])

StatusLiteral = Literal["pending", "dismissed", "deleted", "warned"]


class ReportIn(BaseModel):
    post_id: str = Field(..., min_length=1)
    category: ReportCategory
    description: str | None = Field(default=None, max_length=2000)


class ReportActionIn(BaseModel):
    notes: str = Field(default="", max_length=2000)


class ReportOut(BaseModel):
    id: str
    post_id: str
    reporter_id: str
    category: ReportCategory
    description: str | None
    status: StatusLiteral
    created_at: datetime | None

    @classmethod
    def from_model(cls, report: Report) -> "ReportOut":
        return cls(
            id=report.id,
            post_id=report.post_id,
            reporter_id=report.reporter_id,
            category=report.category,
            description=report.description,
            status=report.status.value,
            created_at=report.created_at,
        )


class ProfileOut(BaseModel):
    id: str
    label: str
    display_name: str | None
    username: str | None
    avatar_url: str | None
    role: str | None
    user_type: str | None

    @classmethod
    def from_model(cls, profile: ProfileSummary | None) -> "ProfileOut | None":
        if profile is None:
            return None
        return cls(
            id=profile.id,
            label=profile.label,
            display_name=profile.display_name,
            username=profile.username,
            avatar_url=profile.avatar_url,
            role=profile.role,
            user_type=profile.user_type,
        )


class PostOut(BaseModel):
    id: str
    content: str
    author_id: str | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, post: PostSummary | None) -> "PostOut | None":
        if post is None:
            return None
        return cls(id=post.id, content=post.content, author_id=post.author_id, created_at=post.created_at)


class ReportEntryOut(ReportOut):
    reporter: ProfileOut | None
    post: PostOut | None
    post_author: ProfileOut | None
    matches: list[BannedWordOut]
    segments: list[SegmentOut]

    @classmethod
    def from_entry(cls, entry: EnrichedReport, segments: list[SegmentOut]) -> "ReportEntryOut":
        base = ReportOut.from_model(entry.report)
        return cls(
            **base.model_dump(),
            reporter=ProfileOut.from_model(entry.reporter),
            post=PostOut.from_model(entry.post),
            post_author=ProfileOut.from_model(entry.post_author),
            matches=[BannedWordOut.from_model(match) for match in entry.matches],
            segments=segments,
        )


class ActionOut(BaseModel):
    id: str | None
    report_id: str
    moderator_id: str | None
    action: str
    notes: str
    created_at: datetime | None

    @classmethod
    def from_model(cls, action: ReportAction) -> "ActionOut":
        return cls(
            id=action.id,
            report_id=action.report_id,
            moderator_id=action.moderator_id,
            action=action.action.value,
            notes=action.notes,
            created_at=action.created_at,
        )


def get_report_repository_dep() -> ReportRepository:
    return get_report_repository()


def get_lifecycle_dep() -> ReportLifecycle:
    return get_lifecycle()


def get_notifier_dep() -> ModerationNotifier:
    return get_notifier()


async def moderator_context(
    moderator: AuthenticatedUser = Depends(get_moderator),
) -> AsyncIterator[AuthenticatedUser]:
    tokens = obs_logging.bind_context(moderator_id=moderator.id)
    try:
        yield moderator
    finally:
        obs_logging.reset_context(tokens)


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportIn,
    repository: ReportRepository = Depends(get_report_repository_dep),
    reporter: AuthenticatedUser = Depends(get_current_user),
) -> ReportOut:
    report = await repository.submit(
        post_id=payload.post_id.strip(),
        reporter_id=reporter.id,
        category=payload.category,
        description=payload.description,
    )
    if report is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="report_not_saved")
    return ReportOut.from_model(report)


@router.get("", response_model=list[ReportEntryOut])
async def list_reports(
    status_filter: StatusLiteral | None = Query(default=None, alias="status"),
    repository: ReportRepository = Depends(get_report_repository_dep),
    store: BannedWordStore = Depends(get_banned_word_store_dep),
    scanner: ContentScanner = Depends(get_scanner_dep),
    notifier: ModerationNotifier = Depends(get_notifier_dep),
    _moderator: AuthenticatedUser = Depends(moderator_context),
) -> list[ReportEntryOut]:
    words = await store.reload()
    entries = filter_by_status(await repository.list(), status_filter)
    results: list[ReportEntryOut] = []
    for entry in entries:
        content = entry.post.content if entry.post else ""
        entry.matches = scanner.scan(content, words)
        if entry.matches:
            await notifier.notify_author_if_flagged(entry, entry.matches)
        segments = [SegmentOut.from_model(segment) for segment in scanner.highlight(content, entry.matches)]
        results.append(ReportEntryOut.from_entry(entry, segments))
    return results


@router.get("/{report_id}/actions", response_model=list[ActionOut])
async def list_report_actions(
    report_id: str,
    lifecycle: ReportLifecycle = Depends(get_lifecycle_dep),
    _moderator: AuthenticatedUser = Depends(moderator_context),
) -> list[ActionOut]:
    return [ActionOut.from_model(action) for action in await lifecycle.actions(report_id)]


@router.post("/{report_id}/dismiss", response_model=ReportOut)
async def dismiss_report(
    report_id: str,
    payload: ReportActionIn | None = None,
    lifecycle: ReportLifecycle = Depends(get_lifecycle_dep),
    repository: ReportRepository = Depends(get_report_repository_dep),
    moderator: AuthenticatedUser = Depends(moderator_context),
) -> ReportOut:
    await _require_report(report_id, repository)
    notes = payload.notes if payload else ""
    report = await lifecycle.dismiss(report_id, moderator_id=moderator.id, notes=notes)
    return _applied(report, repository)


@router.post("/{report_id}/warn", response_model=ReportOut)
async def warn_report_author(
    report_id: str,
    payload: ReportActionIn | None = None,
    lifecycle: ReportLifecycle = Depends(get_lifecycle_dep),
    repository: ReportRepository = Depends(get_report_repository_dep),
    moderator: AuthenticatedUser = Depends(moderator_context),
) -> ReportOut:
    await _require_report(report_id, repository)
    notes = payload.notes if payload else ""
    report = await lifecycle.warn(report_id, moderator_id=moderator.id, notes=notes)
    return _applied(report, repository)


@router.post("/{report_id}/delete-post", response_model=ReportOut)
async def delete_reported_post(
    report_id: str,
    payload: ReportActionIn | None = None,
    lifecycle: ReportLifecycle = Depends(get_lifecycle_dep),
    repository: ReportRepository = Depends(get_report_repository_dep),
    moderator: AuthenticatedUser = Depends(moderator_context),
) -> ReportOut:
    existing = await _require_report(report_id, repository)
    notes = payload.notes if payload else ""
    report = await lifecycle.delete_post(report_id, existing.post_id, moderator_id=moderator.id, notes=notes)
    return _applied(report, repository)


async def _require_report(report_id: str, repository: ReportRepository) -> Report:
    report = await repository.get(report_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="report_not_found")
    return report


def _applied(report: Report | None, repository: ReportRepository) -> ReportOut:
    # The report exists at this point; None means the status write failed.
    if report is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="report_not_updated")
    repository.merge(report)
    return ReportOut.from_model(report)
