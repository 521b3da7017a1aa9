"""Catalog introspection: tables, columns, constraints and indexes.

Framework-agnostic; the MCP layer in server.py wraps the returned rows.
All statements read metadata catalogs only and run without a transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import psycopg

from postgres_mcp.core.exceptions import CatalogError
from postgres_mcp.core.marshal import marshal_rows
from postgres_mcp.core.monitoring import query_span

if TYPE_CHECKING:
    from postgres_mcp.core.database import Database
    from postgres_mcp.core.models import GenericRow

DEFAULT_SCHEMA = "public"

LIST_TABLES_SQL = """
SELECT table_name, table_type
FROM information_schema.tables
WHERE table_schema = %(schema)s
ORDER BY table_name
"""

TABLE_SCHEMA_SQL = """
SELECT
    column_name,
    data_type,
    character_maximum_length AS max_length,
    is_nullable,
    column_default AS "default"
FROM information_schema.columns
WHERE table_schema = %(schema)s AND table_name = %(table)s
ORDER BY ordinal_position
"""

TABLE_CONSTRAINTS_SQL = """
SELECT
    tc.constraint_name,
    tc.constraint_type,
    kcu.column_name,
    ccu.table_name AS foreign_table_name,
    ccu.column_name AS foreign_column_name,
    rc.update_rule,
    rc.delete_rule,
    cc.check_clause
FROM information_schema.table_constraints tc
LEFT JOIN information_schema.key_column_usage kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
LEFT JOIN information_schema.constraint_column_usage ccu
    ON tc.constraint_name = ccu.constraint_name
    AND tc.table_schema = ccu.table_schema
    AND tc.constraint_type = 'FOREIGN KEY'
LEFT JOIN information_schema.referential_constraints rc
    ON tc.constraint_name = rc.constraint_name
    AND tc.table_schema = rc.constraint_schema
LEFT JOIN information_schema.check_constraints cc
    ON tc.constraint_name = cc.constraint_name
    AND tc.table_schema = cc.constraint_schema
WHERE tc.table_schema = %(schema)s AND tc.table_name = %(table)s
ORDER BY tc.constraint_type, tc.constraint_name, kcu.ordinal_position
"""

# One row per indexed column. The pg_class match is schema-qualified so
# equally named indexes in other schemas cannot cross-match.
TABLE_INDEXES_SQL = """
SELECT
    i.indexname AS index_name,
    a.amname AS index_type,
    idx.indisunique AS is_unique,
    idx.indisprimary AS is_primary,
    pg_get_indexdef(idx.indexrelid, k + 1, true) AS column_name,
    k AS column_position,
    i.indexdef AS index_definition
FROM pg_indexes i
JOIN pg_namespace n ON n.nspname = i.schemaname
JOIN pg_class c ON c.relname = i.indexname AND c.relnamespace = n.oid
JOIN pg_index idx ON idx.indexrelid = c.oid
JOIN pg_am a ON a.oid = c.relam
CROSS JOIN LATERAL generate_series(0, idx.indnatts - 1) AS k
WHERE i.schemaname = %(schema)s AND i.tablename = %(table)s
ORDER BY i.indexname, k
"""

_OPTIONAL_COLUMN_FIELDS = ("max_length", "default")
_OPTIONAL_CONSTRAINT_FIELDS = (
    "column_name",
    "foreign_table_name",
    "foreign_column_name",
    "update_rule",
    "delete_rule",
    "check_clause",
)


def resolve_schema(schema: str | None) -> str:
    """Empty or missing schema means public."""
    return schema or DEFAULT_SCHEMA


def _drop_nulls(rows: list[GenericRow], optional: tuple[str, ...]) -> list[GenericRow]:
    return [
        {k: v for k, v in row.items() if not (k in optional and v is None)}
        for row in rows
    ]


async def _fetch(
    db: Database, sql: str, params: dict[str, Any], what: str
) -> list[GenericRow]:
    async with db.connection() as conn, conn.cursor() as cur:
        with query_span(sql) as span:
            try:
                await cur.execute(sql, params)
            except psycopg.Error as e:
                span.set_status("internal_error")
                msg = f"failed to {what}: {e}"
                raise CatalogError(msg) from e
            rows = await marshal_rows(cur)
            span.set_data("row_count", len(rows))
            return rows


async def list_tables(db: Database, schema: str | None = None) -> list[GenericRow]:
    """Tables and views in a schema, by name."""
    return await _fetch(
        db, LIST_TABLES_SQL, {"schema": resolve_schema(schema)}, "list tables"
    )


async def get_table_schema(
    db: Database, table_name: str, schema: str | None = None
) -> list[GenericRow]:
    """Column definitions in ordinal order. max_length/default only when set."""
    rows = await _fetch(
        db,
        TABLE_SCHEMA_SQL,
        {"schema": resolve_schema(schema), "table": table_name},
        "get table schema",
    )
    return _drop_nulls(rows, _OPTIONAL_COLUMN_FIELDS)


async def get_table_constraints(
    db: Database, table_name: str, schema: str | None = None
) -> list[GenericRow]:
    """Constraint rows.

    Foreign-key and check attributes are independent: any of them may be
    absent from a given row.
    """
    rows = await _fetch(
        db,
        TABLE_CONSTRAINTS_SQL,
        {"schema": resolve_schema(schema), "table": table_name},
        "get table constraints",
    )
    return _drop_nulls(rows, _OPTIONAL_CONSTRAINT_FIELDS)


async def get_table_indexes(
    db: Database, table_name: str, schema: str | None = None
) -> list[GenericRow]:
    """One row per (index, column), ordered by index name then column position."""
    return await _fetch(
        db,
        TABLE_INDEXES_SQL,
        {"schema": resolve_schema(schema), "table": table_name},
        "get table indexes",
    )
