"""Row marshaling from psycopg cursors into generic rows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import psycopg

from postgres_mcp.core.exceptions import IterationError, ScanError
from postgres_mcp.core.models import ColumnMeta, GenericRow, QueryResult
from postgres_mcp.core.values import to_json_value

if TYPE_CHECKING:
    from collections.abc import Sequence

# Mapping from PostgreSQL type OIDs to human-readable names.
# Covers the most common PostgreSQL types; unknown OIDs fall back to "unknown".
_TYPE_NAMES: dict[int, str] = {
    16: "bool",
    17: "bytea",
    20: "int8",
    21: "int2",
    23: "int4",
    25: "text",
    26: "oid",
    114: "json",
    142: "xml",
    700: "float4",
    701: "float8",
    790: "money",
    1042: "bpchar",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
}


def column_meta(cursor: psycopg.AsyncCursor[Any]) -> list[ColumnMeta]:
    """Columns in select-list order; empty for statements without a result set."""
    if not cursor.description:
        return []
    return [
        ColumnMeta(
            name=desc.name,
            type_oid=desc.type_code,
            type_name=_TYPE_NAMES.get(desc.type_code, "unknown"),
        )
        for desc in cursor.description
    ]


async def _fetch_all(cursor: psycopg.AsyncCursor[Any]) -> list[Sequence[Any]]:
    try:
        return list(await cursor.fetchall())
    except psycopg.DataError as e:
        msg = f"failed to scan row: {e}"
        raise ScanError(msg) from e
    except psycopg.Error as e:
        msg = f"row iteration error: {e}"
        raise IterationError(msg) from e


def _to_row(columns: list[ColumnMeta], values: Sequence[Any]) -> GenericRow:
    if len(values) != len(columns):
        msg = f"failed to scan row: expected {len(columns)} values, got {len(values)}"
        raise ScanError(msg)
    row: GenericRow = {}
    # Duplicate column names: the later column wins.
    for col, val in zip(columns, values, strict=True):
        row[col.name] = to_json_value(val)
    return row


async def marshal_result(cursor: psycopg.AsyncCursor[Any]) -> QueryResult:
    """Marshal an executed cursor into a QueryResult of generic rows."""
    columns = column_meta(cursor)
    rows: list[GenericRow] = []
    if columns:
        for values in await _fetch_all(cursor):
            rows.append(_to_row(columns, values))
    return QueryResult(
        columns=columns,
        rows=rows,
        row_count=len(rows),
        status_message=cursor.statusmessage or "",
    )


async def marshal_rows(cursor: psycopg.AsyncCursor[Any]) -> list[GenericRow]:
    """Generic rows for an executed cursor. Never None: zero rows gives []."""
    return (await marshal_result(cursor)).rows


async def collect_text(cursor: psycopg.AsyncCursor[Any]) -> str:
    """Concatenate single-text-column rows, one trailing newline per row."""
    if not cursor.description:
        return ""
    lines: list[str] = []
    for values in await _fetch_all(cursor):
        if len(values) != 1 or not isinstance(values[0], str):
            msg = "failed to scan row: expected a single text column"
            raise ScanError(msg)
        lines.append(values[0] + "\n")
    return "".join(lines)
