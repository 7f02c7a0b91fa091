"""PostgreSQL-backed data service with a Redis stream change feed."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, AsyncIterator, Mapping, Optional, Sequence
from uuid import UUID

import asyncpg
from redis.asyncio import Redis

from campusmod.infra.redis import RedisProxy
from campusmod.moderation.domain.data_service import (
    DataService,
    DataServiceError,
    Filters,
    Row,
    UniqueConstraintError,
)
from campusmod.settings import settings

logger = logging.getLogger(__name__)

# Identifiers are interpolated into SQL, so only known tables/columns are accepted.
TABLE_COLUMNS: dict[str, frozenset[str]] = {
    "banned_words": frozenset({"id", "word", "category", "created_by", "created_at"}),
    "reports": frozenset({"id", "post_id", "reporter_id", "category", "description", "status", "created_at"}),
    "report_actions": frozenset({"id", "report_id", "faculty_id", "action", "notes", "created_at"}),
    "notifications": frozenset({"id", "user_id", "actor_id", "type", "post_id", "is_read", "created_at"}),
    "posts": frozenset({"id", "content", "author_id", "created_at"}),
    "profiles": frozenset({"id", "display_name", "username", "avatar_url", "role", "user_type"}),
}

UUID_COLUMNS = frozenset(
    {"id", "post_id", "reporter_id", "report_id", "faculty_id", "user_id", "actor_id", "author_id", "created_by"}
)


class PostgresDataService(DataService):
    """Runs CRUD through asyncpg and publishes inserts to Redis streams.

    Tables listed in ``published_tables`` get every inserted row appended to
    ``<prefix>:<table>:INSERT`` so ``subscribe()`` can follow them.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        redis: Redis | RedisProxy,
        *,
        published_tables: Sequence[str] = ("reports",),
        stream_prefix: Optional[str] = None,
        block_ms: Optional[int] = None,
        stream_maxlen: int = 10_000,
    ) -> None:
        self.pool = pool
        self.redis = redis
        self.published_tables = frozenset(published_tables)
        self.stream_prefix = stream_prefix or settings.moderation_changes_stream_prefix
        self.block_ms = block_ms if block_ms is not None else settings.moderation_changes_block_ms
        self.stream_maxlen = stream_maxlen

    def stream_key(self, table: str, event: str = "INSERT") -> str:
        return f"{self.stream_prefix}:{table}:{event.upper()}"

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        allowed = _columns_for(table)
        selected = ", ".join(_check_column(table, allowed, column) for column in columns) if columns else "*"
        where_clause, params = _where(table, allowed, filters)
        query = f"SELECT {selected} FROM {table}{where_clause}"
        if order_by:
            direction = "DESC" if descending else "ASC"
            query += f" ORDER BY {_check_column(table, allowed, order_by)} {direction}"
        if limit is not None:
            params.append(int(limit))
            query += f" LIMIT ${len(params)}"
        try:
            records = await self.pool.fetch(query, *params)
        except (asyncpg.PostgresError, OSError) as exc:
            raise DataServiceError(table, "select", str(exc)) from exc
        return [_row_from_record(record) for record in records]

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        allowed = _columns_for(table)
        inserted: list[Row] = []
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    for payload in rows:
                        names = [_check_column(table, allowed, column) for column in payload]
                        values = [_to_db(column, payload[column]) for column in payload]
                        placeholders = ", ".join(f"${idx}" for idx in range(1, len(values) + 1))
                        query = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders}) RETURNING *"
                        record = await conn.fetchrow(query, *values)
                        if record is None:
                            raise DataServiceError(table, "insert", "no row returned")
                        inserted.append(_row_from_record(record))
        except asyncpg.UniqueViolationError as exc:  # type: ignore[attr-defined]
            raise UniqueConstraintError(table, "insert", str(exc)) from exc
        except (asyncpg.PostgresError, OSError) as exc:
            raise DataServiceError(table, "insert", str(exc)) from exc
        if table in self.published_tables:
            await self._publish(table, inserted)
        return inserted

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        allowed = _columns_for(table)
        if not patch:
            return
        params: list[Any] = []
        assignments: list[str] = []
        for column, value in patch.items():
            params.append(_to_db(column, value))
            assignments.append(f"{_check_column(table, allowed, column)} = ${len(params)}")
        where_clause, params = _where(table, allowed, filters, params)
        query = f"UPDATE {table} SET {', '.join(assignments)}{where_clause}"
        try:
            await self.pool.execute(query, *params)
        except (asyncpg.PostgresError, OSError) as exc:
            raise DataServiceError(table, "update", str(exc)) from exc

    async def delete(self, table: str, filters: Filters) -> None:
        allowed = _columns_for(table)
        if not filters:
            raise DataServiceError(table, "delete", "refusing unfiltered delete")
        where_clause, params = _where(table, allowed, filters)
        try:
            await self.pool.execute(f"DELETE FROM {table}{where_clause}", *params)
        except (asyncpg.PostgresError, OSError) as exc:
            raise DataServiceError(table, "delete", str(exc)) from exc

    async def subscribe(self, table: str, event: str = "INSERT") -> AsyncIterator[Row]:
        _columns_for(table)
        key = self.stream_key(table, event)
        last_id = "$"
        while True:
            try:
                messages = await self.redis.xread({key: last_id}, count=100, block=self.block_ms)
            except Exception as exc:  # noqa: BLE001 - redis raises a wide family of errors
                raise DataServiceError(table, "subscribe", str(exc)) from exc
            if not messages:
                continue
            for _stream, entries in messages:
                for entry_id, payload in entries:
                    last_id = entry_id
                    row = _decode_change(payload)
                    if row is not None:
                        yield row

    async def _publish(self, table: str, rows: Sequence[Row]) -> None:
        key = self.stream_key(table, "INSERT")
        for row in rows:
            try:
                await self.redis.xadd(key, {"row": json.dumps(row, default=_json_default)}, maxlen=self.stream_maxlen)
            except Exception:  # noqa: BLE001 - change feed must not fail the write
                logger.exception("failed to publish change event", extra={"table": table, "row_id": row.get("id")})


def _columns_for(table: str) -> frozenset[str]:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise DataServiceError(table, "validate", "unknown table") from None


def _check_column(table: str, allowed: frozenset[str], column: str) -> str:
    if column not in allowed:
        raise DataServiceError(table, "validate", f"unknown column {column!r}")
    return column


def _where(
    table: str,
    allowed: frozenset[str],
    filters: Optional[Filters],
    params: Optional[list[Any]] = None,
) -> tuple[str, list[Any]]:
    params = list(params or [])
    conditions: list[str] = []
    for column, value in (filters or {}).items():
        name = _check_column(table, allowed, column)
        if isinstance(value, (list, tuple, set, frozenset)):
            params.append([_to_db(column, item) for item in value])
            conditions.append(f"{name} = ANY(${len(params)})")
        elif value is None:
            conditions.append(f"{name} IS NULL")
        else:
            params.append(_to_db(column, value))
            conditions.append(f"{name} = ${len(params)}")
    if not conditions:
        return "", params
    return " WHERE " + " AND ".join(conditions), params


def _to_db(column: str, value: Any) -> Any:
    if column in UUID_COLUMNS and isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            return value
    return value


def _row_from_record(record: Mapping[str, Any]) -> Row:
    row: Row = {}
    for key, value in dict(record).items():
        row[key] = str(value) if isinstance(value, UUID) else value
    return row


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"unserialisable value {type(value)!r}")


def _decode_change(payload: Mapping[Any, Any]) -> Row | None:
    raw = payload.get("row", payload.get(b"row"))
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if not raw:
        return None
    try:
        row = json.loads(raw)
    except ValueError:
        logger.warning("dropping undecodable change event")
        return None
    created_at = row.get("created_at")
    if isinstance(created_at, str):
        try:
            row["created_at"] = datetime.fromisoformat(created_at)
        except ValueError:
            pass
    return row
