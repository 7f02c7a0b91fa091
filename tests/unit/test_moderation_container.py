from __future__ import annotations

from unittest.mock import MagicMock

import asyncpg

from campusmod.infra.redis import RedisProxy
from campusmod.moderation.domain import container
from campusmod.moderation.domain.data_service import InMemoryDataService
from campusmod.moderation.domain.scanner import ContentScanner
from campusmod.moderation.infra.postgres_data_service import PostgresDataService


class _StubRedis:
    async def xadd(self, key, fields, maxlen=None):
        return "1-0"


def test_configure_postgres_uses_postgres_data_service() -> None:
    pool = MagicMock(spec=asyncpg.Pool)
    redis_proxy = RedisProxy(_StubRedis())

    container.configure_postgres(pool, redis_proxy)

    service = container.get_data_service()
    assert isinstance(service, PostgresDataService)
    assert service.pool is pool
    assert service.redis is redis_proxy
    assert service.stream_key("reports") == "changes:reports:INSERT"


def test_configure_rebuilds_components_around_new_store() -> None:
    data = InMemoryDataService()
    scanner = ContentScanner()
    before = container.get_report_repository()

    container.configure(data_service=data, scanner=scanner, allow_terminal_transitions=True)

    assert container.get_data_service() is data
    assert container.get_scanner() is scanner
    assert container.get_report_repository() is not before
    assert container.get_lifecycle().allow_terminal_transitions is True
    assert container.get_notifier().notification_type == "banned_word_detected"
    assert container.get_banned_word_store().words == []
