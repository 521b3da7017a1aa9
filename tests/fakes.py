"""In-memory fakes of the psycopg async pool, connection and cursor.

Unit tests run the real Database, marshaling and transaction logic against
these fakes so no server is needed.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

TEXT_OID = 25
INT4_OID = 23


@dataclass
class FakeColumn:
    name: str
    type_code: int = TEXT_OID


@dataclass
class FakeResult:
    """What the fake server answers for statements matching a prefix."""

    columns: list[str] | None = None
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    status: str = "SELECT"
    type_codes: list[int] | None = None
    error: Exception | None = None
    fetch_error: Exception | None = None


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.description: list[FakeColumn] | None = None
        self.statusmessage: str | None = None
        self._result: FakeResult | None = None

    async def __aenter__(self) -> FakeCursor:
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def execute(
        self, sql: str, params: Any = None, *, prepare: bool | None = None
    ) -> FakeCursor:
        self.conn.executed.append(sql)
        self.conn.params.append(params)
        self.conn.prepared.append(prepare)
        result = self.conn.lookup(sql)
        if result.error is not None:
            raise result.error
        self._result = result
        if result.columns is not None:
            codes = result.type_codes or [TEXT_OID] * len(result.columns)
            self.description = [
                FakeColumn(name, code)
                for name, code in zip(result.columns, codes, strict=True)
            ]
        self.statusmessage = result.status
        return self

    async def fetchall(self) -> list[tuple[Any, ...]]:
        assert self._result is not None
        if self._result.fetch_error is not None:
            raise self._result.fetch_error
        return list(self._result.rows)

    async def fetchone(self) -> tuple[Any, ...] | None:
        rows = await self.fetchall()
        return rows[0] if rows else None


class FakeConnection:
    def __init__(self) -> None:
        self.executed: list[str] = []
        self.params: list[Any] = []
        self.prepared: list[bool | None] = []
        self.rollback_error: Exception | None = None
        self.begin_error: Exception | None = None
        self._results: list[tuple[str, FakeResult]] = []

    def on(self, prefix: str, result: FakeResult) -> None:
        self._results.append((prefix, result))

    def lookup(self, sql: str) -> FakeResult:
        stripped = sql.lstrip()
        for prefix, result in self._results:
            if stripped.startswith(prefix):
                return result
        return FakeResult()

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    async def execute(self, sql: str, params: Any = None) -> FakeCursor:
        if sql == "BEGIN" and self.begin_error is not None:
            self.executed.append(sql)
            raise self.begin_error
        if sql == "ROLLBACK" and self.rollback_error is not None:
            self.executed.append(sql)
            raise self.rollback_error
        return await self.cursor().execute(sql, params)


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.closed = False
        self.checkouts = 0

    @asynccontextmanager
    async def connection(self):
        self.checkouts += 1
        yield self.conn

    async def close(self) -> None:
        self.closed = True

