"""Banned-word list management for moderators."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from campusmod.infra.auth import AuthenticatedUser, get_moderator
from campusmod.moderation.domain.banned_words import BannedWordStore
from campusmod.moderation.domain.container import get_banned_word_store
from campusmod.moderation.domain.models import BannedWord

router = APIRouter(prefix="/api/mod/v1/banned-words", tags=["moderation-banned-words"])


class BannedWordIn(BaseModel):
    word: str = Field(..., max_length=200)
    category: str | None = Field(default=None, max_length=64)


class BannedWordOut(BaseModel):
    id: str | None
    word: str
    category: str | None
    created_by: str | None

    @classmethod
    def from_model(cls, word: BannedWord) -> "BannedWordOut":
        return cls(id=word.id, word=word.word, category=word.category, created_by=word.created_by)


def get_banned_word_store_dep() -> BannedWordStore:
    return get_banned_word_store()


@router.get("", response_model=list[BannedWordOut])
async def list_banned_words(
    store: BannedWordStore = Depends(get_banned_word_store_dep),
    _moderator: AuthenticatedUser = Depends(get_moderator),
) -> list[BannedWordOut]:
    words = await store.reload()
    return [BannedWordOut.from_model(word) for word in words]


@router.post("", response_model=BannedWordOut, status_code=status.HTTP_201_CREATED)
async def add_banned_word(
    payload: BannedWordIn,
    store: BannedWordStore = Depends(get_banned_word_store_dep),
    moderator: AuthenticatedUser = Depends(get_moderator),
) -> BannedWordOut:
    if not payload.word.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="word_required")
    created = await store.add(payload.word, payload.category, created_by=moderator.id)
    if created is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="banned_word_not_saved")
    await store.reload()
    return BannedWordOut.from_model(created)
