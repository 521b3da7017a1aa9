"""General-purpose SQL execution tool.

Statements run as-is on an autocommit connection: no wrapping transaction
and no rollback, so data-modifying SQL takes effect.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg
import structlog

from postgres_mcp.core.envelope import ToolEnvelope
from postgres_mcp.core.marshal import marshal_result
from postgres_mcp.core.monitoring import query_span

if TYPE_CHECKING:
    from postgres_mcp.core.database import Database
    from postgres_mcp.core.models import QueryArgs


async def execute_query(db: Database, args: QueryArgs) -> ToolEnvelope:
    """Run the caller's statement and return its rows.

    Execution faults (bad SQL, constraint violations, permissions) come back
    as an error-flagged envelope carrying the server message. Scan and
    iteration faults raise.
    """
    log = structlog.get_logger()
    async with db.connection() as conn, conn.cursor() as cur:
        with query_span(args.query) as span:
            try:
                # No params: '%' in the statement stays literal.
                await cur.execute(args.query)
            except psycopg.Error as e:
                span.set_status("invalid_argument")
                log.warning("query error", error=str(e))
                return ToolEnvelope.failure(f"Query error: {e}")
            result = await marshal_result(cur)
            span.set_data("row_count", result.row_count)

    log.debug(
        "query complete",
        row_count=result.row_count,
        status=result.status_message,
        columns=[c.type_name for c in result.columns],
    )
    return ToolEnvelope.from_rows(result.rows)
