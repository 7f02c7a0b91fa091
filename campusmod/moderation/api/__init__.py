"""Moderation API routers."""

from fastapi import APIRouter

from . import banned_words, reports, scan

router = APIRouter()
router.include_router(banned_words.router)
router.include_router(scan.router)
router.include_router(reports.router)

__all__ = ["router"]
