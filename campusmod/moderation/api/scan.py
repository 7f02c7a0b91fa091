"""Ad-hoc banned-word scans, used by composer previews and the dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from campusmod.infra.auth import AuthenticatedUser, get_current_user
from campusmod.moderation.api.banned_words import BannedWordOut, get_banned_word_store_dep
from campusmod.moderation.domain.banned_words import BannedWordStore
from campusmod.moderation.domain.container import get_scanner
from campusmod.moderation.domain.scanner import ContentScanner, Segment

router = APIRouter(prefix="/api/mod/v1/scan", tags=["moderation-scan"])


class ScanIn(BaseModel):
    text: str = Field(default="", max_length=20_000)


class SegmentOut(BaseModel):
    text: str
    highlighted: bool

    @classmethod
    def from_model(cls, segment: Segment) -> "SegmentOut":
        return cls(text=segment.text, highlighted=segment.highlighted)


class ScanOut(BaseModel):
    flagged: bool
    matches: list[BannedWordOut]
    segments: list[SegmentOut]


def get_scanner_dep() -> ContentScanner:
    return get_scanner()


@router.post("", response_model=ScanOut)
async def scan_text(
    payload: ScanIn,
    scanner: ContentScanner = Depends(get_scanner_dep),
    store: BannedWordStore = Depends(get_banned_word_store_dep),
    _user: AuthenticatedUser = Depends(get_current_user),
) -> ScanOut:
    if not store.words:
        await store.load()
    matches = scanner.scan(payload.text, store.words)
    return ScanOut(
        flagged=bool(matches),
        matches=[BannedWordOut.from_model(match) for match in matches],
        segments=[SegmentOut.from_model(segment) for segment in scanner.highlight(payload.text, matches)],
    )
