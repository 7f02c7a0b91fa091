"""Lightweight service container shared by moderation modules."""

from __future__ import annotations

from typing import Optional

import asyncpg
from redis.asyncio import Redis

from campusmod.infra.redis import RedisProxy
from campusmod.moderation.domain.banned_words import BannedWordStore
from campusmod.moderation.domain.data_service import DataService, InMemoryDataService
from campusmod.moderation.domain.lifecycle import ReportLifecycle
from campusmod.moderation.domain.notifier import ModerationNotifier
from campusmod.moderation.domain.reports import ReportRepository
from campusmod.moderation.domain.scanner import ContentScanner
from campusmod.moderation.infra.postgres_data_service import PostgresDataService
from campusmod.settings import settings

_data_service: DataService = InMemoryDataService.with_moderation_constraints()
_scanner = ContentScanner()
_banned_words = BannedWordStore(_data_service)
_reports = ReportRepository(_data_service)
_notifier = ModerationNotifier(_data_service)
_lifecycle = ReportLifecycle(
    _data_service,
    allow_terminal_transitions=settings.moderation_allow_terminal_transitions,
)


def configure(
    *,
    data_service: Optional[DataService] = None,
    scanner: Optional[ContentScanner] = None,
    allow_terminal_transitions: Optional[bool] = None,
) -> None:
    global _data_service, _scanner, _banned_words, _reports, _notifier, _lifecycle
    if data_service is not None:
        _data_service = data_service
    if scanner is not None:
        _scanner = scanner
    if allow_terminal_transitions is None:
        allow_terminal_transitions = settings.moderation_allow_terminal_transitions
    _banned_words = BannedWordStore(_data_service)
    _reports = ReportRepository(_data_service)
    _notifier = ModerationNotifier(_data_service)
    _lifecycle = ReportLifecycle(_data_service, allow_terminal_transitions=allow_terminal_transitions)


def configure_postgres(pool: asyncpg.Pool, redis_conn: Redis | RedisProxy) -> None:
    configure(data_service=PostgresDataService(pool, redis_conn))


def get_data_service() -> DataService:
    return _data_service


def get_scanner() -> ContentScanner:
    return _scanner


def get_banned_word_store() -> BannedWordStore:
    return _banned_words


def get_report_repository() -> ReportRepository:
    return _reports


def get_notifier() -> ModerationNotifier:
    return _notifier


def get_lifecycle() -> ReportLifecycle:
    return _lifecycle
