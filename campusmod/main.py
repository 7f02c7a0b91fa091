"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from campusmod import obs
from campusmod.infra import postgres
from campusmod.infra.redis import redis_client
from campusmod.moderation import configure_postgres as configure_moderation
from campusmod.moderation import router as moderation_router
from campusmod.moderation.domain.container import get_banned_word_store
from campusmod.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.moderation_use_postgres:
		pool = await postgres.init_pool()
		configure_moderation(pool, redis_client)
	words = await get_banned_word_store().load()
	logger.info("moderation ready", extra={"banned_words": len(words), "postgres": settings.moderation_use_postgres})
	try:
		yield
	finally:
		if settings.moderation_use_postgres:
			await postgres.close_pool()


app = FastAPI(title="Campus Moderation", lifespan=lifespan)
obs.init(app)
app.include_router(moderation_router, tags=["moderation"])


@app.get("/health")
async def health() -> dict[str, str]:
	return {"status": "ok"}
