"""Storage contract consumed by moderation components, plus an in-memory fallback."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Mapping, Optional, Protocol, Sequence
from uuid import uuid4

from campusmod.moderation.domain.models import FLAGGED_NOTIFICATION_TYPE

Row = dict[str, Any]
Filters = Mapping[str, Any]


class DataServiceError(Exception):
    """Raised when the backing store cannot complete an operation."""

    def __init__(self, table: str, op: str, message: str = "") -> None:
        super().__init__(f"{op} {table} failed: {message}" if message else f"{op} {table} failed")
        self.table = table
        self.op = op


class UniqueConstraintError(DataServiceError):
    """Raised when an insert collides with a uniqueness constraint."""


class DataService(Protocol):
    """CRUD plus change-subscription surface of the hosted data service.

    ``filters`` maps column names to values; a list, tuple or set value means
    "column IN values".
    """

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
        ...

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        ...

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        ...

    async def delete(self, table: str, filters: Filters) -> None:
        ...

    def subscribe(self, table: str, event: str = "INSERT") -> AsyncIterator[Row]:
        ...


def matches_filters(row: Mapping[str, Any], filters: Optional[Filters]) -> bool:
    if not filters:
        return True
    for column, expected in filters.items():
        value = row.get(column)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class InMemoryDataService(DataService):
    """Reference data service used in tests and developer environments.

    ``unique`` declares per-table column groups that must be unique, optionally
    restricted to rows matching a predicate mapping (a partial unique index).
    """

    def __init__(
        self,
        *,
        unique: Optional[Mapping[str, Iterable[tuple[tuple[str, ...], Mapping[str, Any]]]]] = None,
    ) -> None:
        self.tables: dict[str, list[Row]] = defaultdict(list)
        self._unique = {table: list(specs) for table, specs in (unique or {}).items()}
        self._subscribers: dict[tuple[str, str], list[asyncio.Queue[Row]]] = defaultdict(list)
        self._clock = 0
        self.fail_ops: set[tuple[str, str]] = set()

    @classmethod
    def with_moderation_constraints(cls) -> "InMemoryDataService":
        return cls(
            unique={
                "notifications": [(("post_id", "type"), {"type": FLAGGED_NOTIFICATION_TYPE})],
            }
        )

    def fail(self, table: str, op: str) -> None:
        """Make subsequent ``op`` calls against ``table`` raise DataServiceError."""
        self.fail_ops.add((table, op))

    def _check(self, table: str, op: str) -> None:
        if (table, op) in self.fail_ops:
            raise DataServiceError(table, op, "injected failure")

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so "newest first" ordering is deterministic in tests.
        self._clock += 1
        base = datetime.now(timezone.utc).replace(microsecond=0)
        return base.replace(microsecond=self._clock % 1_000_000)

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
        self._check(table, "select")
        rows = [dict(row) for row in self.tables[table] if matches_filters(row, filters)]
        if order_by:
            rows.sort(key=lambda row: (row.get(order_by) is None, row.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns:
            rows = [{column: row.get(column) for column in columns} for row in rows]
        return rows

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        self._check(table, "insert")
        inserted: list[Row] = []
        for payload in rows:
            row = dict(payload)
            row.setdefault("id", str(uuid4()))
            row.setdefault("created_at", self._next_timestamp())
            self._enforce_unique(table, row)
            self.tables[table].append(row)
            inserted.append(dict(row))
        for row in inserted:
            for queue in self._subscribers.get((table, "INSERT"), []):
                queue.put_nowait(dict(row))
        return inserted

    async def update(self, table: str, filters: Filters, patch: Mapping[str, Any]) -> None:
        self._check(table, "update")
        for row in self.tables[table]:
            if matches_filters(row, filters):
                row.update(patch)

    async def delete(self, table: str, filters: Filters) -> None:
        self._check(table, "delete")
        self.tables[table] = [row for row in self.tables[table] if not matches_filters(row, filters)]

    def subscribe(self, table: str, event: str = "INSERT") -> AsyncIterator[Row]:
        # Register eagerly so rows inserted before the first read are not lost.
        queue: asyncio.Queue[Row] = asyncio.Queue()
        key = (table, event.upper())
        self._subscribers[key].append(queue)
        return _ChangeStream(self, key, queue)

    def _release(self, key: tuple[str, str], queue: "asyncio.Queue[Row]") -> None:
        subscribers = self._subscribers.get(key, [])
        if queue in subscribers:
            subscribers.remove(queue)

    def _enforce_unique(self, table: str, row: Mapping[str, Any]) -> None:
        for columns, predicate in self._unique.get(table, []):
            if not matches_filters(row, predicate):
                continue
            key = tuple(row.get(column) for column in columns)
            for existing in self.tables[table]:
                if matches_filters(existing, predicate) and tuple(existing.get(c) for c in columns) == key:
                    raise UniqueConstraintError(table, "insert", f"duplicate key {columns}={key}")


class _ChangeStream:
    """Async iterator over one subscriber queue.

    ``aclose()`` releases the queue whether or not iteration ever started.
    """

    def __init__(self, owner: InMemoryDataService, key: tuple[str, str], queue: "asyncio.Queue[Row]") -> None:
        self._owner = owner
        self._key = key
        self._queue = queue
        self._closed = False

    def __aiter__(self) -> "_ChangeStream":
        return self

    async def __anext__(self) -> Row:
        if self._closed:
            raise StopAsyncIteration
        return await self._queue.get()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._owner._release(self._key, self._queue)
