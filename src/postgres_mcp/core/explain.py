"""Guarded EXPLAIN tool.

EXPLAIN ANALYZE really executes the statement, so it always runs inside a
transaction that is rolled back on every exit path. Nothing the explained
statement writes survives the call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg
import structlog

from postgres_mcp.core.envelope import ToolEnvelope
from postgres_mcp.core.marshal import collect_text, marshal_rows
from postgres_mcp.core.models import ExplainFormat, ExplainOptions
from postgres_mcp.core.monitoring import query_span

if TYPE_CHECKING:
    from postgres_mcp.core.database import Database
    from postgres_mcp.core.models import ExplainAnalyzeArgs


def build_explain_statement(query: str, options: ExplainOptions) -> str:
    return f"EXPLAIN ({', '.join(options.clause())}) {query}"


async def explain_analyze(db: Database, args: ExplainAnalyzeArgs) -> ToolEnvelope:
    """Explain the caller's statement with the resolved option set.

    json format returns the plan rows; text, xml and yaml return the plan
    lines joined into one string.
    """
    log = structlog.get_logger()
    options = ExplainOptions.from_args(args)
    statement = build_explain_statement(args.query, options)
    log.debug("explain options", options=options.clause())

    async with db.rollback_only() as conn, conn.cursor() as cur:
        with query_span(statement) as span:
            try:
                # Prepared: the server rejects a second statement such as COMMIT.
                await cur.execute(statement, prepare=True)
            except psycopg.Error as e:
                span.set_status("invalid_argument")
                log.warning("explain error", error=str(e))
                return ToolEnvelope.failure(f"EXPLAIN error: {e}")

            if options.format is ExplainFormat.JSON:
                return ToolEnvelope.from_rows(await marshal_rows(cur))
            return ToolEnvelope.from_text(await collect_text(cur))
