"""Records exchanged between the moderation components and the data service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FLAGGED_NOTIFICATION_TYPE = "banned_word_detected"


class ReportStatus(str, Enum):
    PENDING = "pending"
    DISMISSED = "dismissed"
    DELETED = "deleted"
    WARNED = "warned"

    @property
    def is_terminal(self) -> bool:
        return self is not ReportStatus.PENDING

    @classmethod
    def parse(cls, value: Any) -> "ReportStatus":
        # Rows written before the status column had a default carry NULL or "open".
        text = str(value or "").strip().lower()
        if text in ("", "open"):
            return cls.PENDING
        return cls(text)


class ReportActionType(str, Enum):
    DISMISS = "dismiss"
    DELETE_POST = "delete_post"
    WARN_USER = "warn_user"


class ReportCategory(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    HATE_SPEECH = "hate_speech"
    INAPPROPRIATE = "inappropriate"
    MISINFORMATION = "misinformation"
    VIOLENCE = "violence"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "ReportCategory":
        text = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(text)
        except ValueError:
            return cls.OTHER


@dataclass(slots=True)
class BannedWord:
    id: str | None
    word: str
    category: str | None = None
    created_by: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BannedWord":
        return cls(
            id=_opt_str(row.get("id")),
            word=str(row.get("word") or ""),
            category=row.get("category"),
            created_by=_opt_str(row.get("created_by")),
        )

    def copy(self) -> "BannedWord":
        return replace(self)


@dataclass(slots=True)
class Report:
    id: str
    post_id: str
    reporter_id: str
    category: ReportCategory
    description: str | None
    status: ReportStatus
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Report":
        return cls(
            id=str(row["id"]),
            post_id=str(row.get("post_id") or ""),
            reporter_id=str(row.get("reporter_id") or ""),
            category=ReportCategory.parse(row.get("category")),
            description=row.get("description"),
            status=ReportStatus.parse(row.get("status")),
            created_at=row.get("created_at"),
        )


@dataclass(slots=True)
class ReportAction:
    id: str | None
    report_id: str
    moderator_id: str | None
    action: ReportActionType
    notes: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ReportAction":
        return cls(
            id=_opt_str(row.get("id")),
            report_id=str(row["report_id"]),
            moderator_id=_opt_str(row.get("faculty_id")),
            action=ReportActionType(row["action"]),
            notes=str(row.get("notes") or ""),
            created_at=row.get("created_at"),
        )


@dataclass(slots=True)
class Notification:
    id: str | None
    user_id: str
    type: str
    post_id: str | None
    actor_id: str | None = None
    is_read: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Notification":
        return cls(
            id=_opt_str(row.get("id")),
            user_id=str(row["user_id"]),
            type=str(row["type"]),
            post_id=_opt_str(row.get("post_id")),
            actor_id=_opt_str(row.get("actor_id")),
            is_read=bool(row.get("is_read")),
        )


@dataclass(slots=True)
class ProfileSummary:
    id: str
    display_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None
    role: str | None = None
    user_type: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.username or self.id

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProfileSummary":
        return cls(
            id=str(row["id"]),
            display_name=row.get("display_name"),
            username=row.get("username"),
            avatar_url=row.get("avatar_url"),
            role=row.get("role"),
            user_type=row.get("user_type"),
        )


@dataclass(slots=True)
class PostSummary:
    id: str
    content: str
    author_id: str | None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PostSummary":
        return cls(
            id=str(row["id"]),
            content=str(row.get("content") or ""),
            author_id=_opt_str(row.get("author_id")),
            created_at=row.get("created_at"),
        )


@dataclass(slots=True)
class EnrichedReport:
    """A report plus the profile and post summaries resolved for display."""

    report: Report
    reporter: Optional[ProfileSummary] = None
    post: Optional[PostSummary] = None
    post_author: Optional[ProfileSummary] = None
    matches: list[BannedWord] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.report.id

    @property
    def status(self) -> ReportStatus:
        return self.report.status


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def parse_rows(factory: Callable[[Mapping[str, Any]], T], rows: Iterable[Mapping[str, Any]]) -> list[T]:
    """Build records with ``factory``, skipping rows that do not parse.

    One bad row (an unknown status, a missing id) must not hide the rest of a
    listing, so it is logged and dropped.
    """
    parsed: list[T] = []
    for row in rows:
        try:
            parsed.append(factory(row))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "skipping malformed row",
                extra={"record": getattr(factory, "__qualname__", str(factory)), "row_id": row.get("id"), "error": str(exc)},
            )
    return parsed
