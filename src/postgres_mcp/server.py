"""MCP server wiring for postgres-mcp.

Tool definitions, argument validation and dispatch to the core tools. The
Database handle is injected into create_server(); there is no module-level
connection state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import sentry_sdk
from mcp import types
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from pydantic import ValidationError

from postgres_mcp.__about__ import __version__
from postgres_mcp.core import catalog
from postgres_mcp.core.envelope import ToolEnvelope
from postgres_mcp.core.exceptions import InputError, PgMcpError
from postgres_mcp.core.explain import explain_analyze
from postgres_mcp.core.logging import get_logger
from postgres_mcp.core.models import (
    ExplainAnalyzeArgs,
    QueryArgs,
    TableArgs,
    TableListArgs,
)
from postgres_mcp.core.query import execute_query

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pydantic import BaseModel

    from postgres_mcp.core.database import Database

SERVER_NAME = "postgres-mcp"

_SCHEMA_PROPERTY = {"type": "string", "description": "Schema name (default: public)"}
_TABLE_PROPERTY = {"type": "string", "description": "Name of the table"}


def _table_tool(name: str, description: str) -> types.Tool:
    return types.Tool(
        name=name,
        description=description,
        inputSchema={
            "type": "object",
            "properties": {
                "table_name": _TABLE_PROPERTY,
                "schema": _SCHEMA_PROPERTY,
            },
            "required": ["table_name"],
        },
    )


TOOLS: list[types.Tool] = [
    _table_tool(
        "get_table_schema",
        "Get the schema information (columns, data types, etc.) for a specific table",
    ),
    types.Tool(
        name="query",
        description=(
            "Execute a SQL query against the PostgreSQL database and return "
            "results as JSON"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "SQL query to execute"},
            },
            "required": ["query"],
        },
    ),
    types.Tool(
        name="list_tables",
        description="List all tables in the specified schema (default: public)",
        inputSchema={
            "type": "object",
            "properties": {"schema": _SCHEMA_PROPERTY},
        },
    ),
    _table_tool(
        "get_table_constraints",
        "Get all constraints (primary key, foreign key, unique, check) for a "
        "specific table",
    ),
    _table_tool(
        "get_table_indexes",
        "Get all indexes for a specific table including index type and columns",
    ),
    types.Tool(
        name="explain_analyze",
        description=(
            "Run EXPLAIN ANALYZE on a query to get the query execution plan and "
            "performance metrics. Supports options for analyze, verbose, costs, "
            "buffers, timing, summary, and output format (text, json, xml, yaml). "
            "The statement runs inside a transaction that is always rolled back."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "SQL query to explain and analyze",
                },
                "analyze": {
                    "type": "boolean",
                    "description": "Run ANALYZE to get actual execution statistics (default: true)",
                },
                "verbose": {
                    "type": "boolean",
                    "description": "Include verbose output with additional details (default: false)",
                },
                "costs": {
                    "type": "boolean",
                    "description": "Include estimated startup and total costs (default: true)",
                },
                "buffers": {
                    "type": "boolean",
                    "description": "Include buffer usage statistics (default: false)",
                },
                "timing": {
                    "type": "boolean",
                    "description": "Include actual timing information (default: true)",
                },
                "summary": {
                    "type": "boolean",
                    "description": "Include summary information (default: true)",
                },
                "format": {
                    "type": "string",
                    "description": "Output format: text, json, xml, or yaml (default: json)",
                },
            },
            "required": ["query"],
        },
    ),
]


def _parse(model: type[BaseModel], tool: str, arguments: dict[str, Any]) -> Any:
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        msg = f"Invalid arguments for {tool}: {e}"
        raise InputError(msg) from e


class ToolDispatcher:
    """Routes tool calls to the core entry points with one injected Database."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self._handlers: dict[
            str, Callable[[dict[str, Any]], Awaitable[ToolEnvelope]]
        ] = {
            "query": self._query,
            "list_tables": self._list_tables,
            "get_table_schema": self._table_schema,
            "get_table_constraints": self._table_constraints,
            "get_table_indexes": self._table_indexes,
            "explain_analyze": self._explain_analyze,
        }

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(
        self, name: str, arguments: dict[str, Any] | None
    ) -> ToolEnvelope:
        """Run one tool. Raises PgMcpError subclasses for hard tool errors."""
        handler = self._handlers.get(name)
        if handler is None:
            msg = f"Unknown tool: {name}"
            raise InputError(msg)

        log = get_logger("server").bind(tool=name)
        log.debug("tool call")
        with sentry_sdk.start_transaction(op="mcp.tool", name=name):
            try:
                envelope = await handler(arguments or {})
            except PgMcpError as e:
                log.error("tool failed", error=e.message)
                sentry_sdk.capture_exception(e)
                raise
        log.debug("tool complete", is_error=envelope.is_error)
        return envelope

    async def _query(self, arguments: dict[str, Any]) -> ToolEnvelope:
        return await execute_query(self.db, _parse(QueryArgs, "query", arguments))

    async def _list_tables(self, arguments: dict[str, Any]) -> ToolEnvelope:
        args = _parse(TableListArgs, "list_tables", arguments)
        return ToolEnvelope.from_rows(
            await catalog.list_tables(self.db, args.schema_name)
        )

    async def _table_schema(self, arguments: dict[str, Any]) -> ToolEnvelope:
        args = _parse(TableArgs, "get_table_schema", arguments)
        return ToolEnvelope.from_rows(
            await catalog.get_table_schema(self.db, args.table_name, args.schema_name)
        )

    async def _table_constraints(self, arguments: dict[str, Any]) -> ToolEnvelope:
        args = _parse(TableArgs, "get_table_constraints", arguments)
        return ToolEnvelope.from_rows(
            await catalog.get_table_constraints(
                self.db, args.table_name, args.schema_name
            )
        )

    async def _table_indexes(self, arguments: dict[str, Any]) -> ToolEnvelope:
        args = _parse(TableArgs, "get_table_indexes", arguments)
        return ToolEnvelope.from_rows(
            await catalog.get_table_indexes(self.db, args.table_name, args.schema_name)
        )

    async def _explain_analyze(self, arguments: dict[str, Any]) -> ToolEnvelope:
        args = _parse(ExplainAnalyzeArgs, "explain_analyze", arguments)
        return await explain_analyze(self.db, args)


def create_server(db: Database) -> Server[Any, Any]:
    """Build the MCP server with list_tools/call_tool bound to db."""
    server: Server[Any, Any] = Server(SERVER_NAME, version=__version__)
    dispatcher = ToolDispatcher(db)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return TOOLS

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict[str, Any]
    ) -> types.CallToolResult:
        envelope = await dispatcher.dispatch(name, arguments)
        return envelope.to_call_tool_result()

    return server


async def serve_stdio(db: Database) -> None:
    """Serve tool calls over stdin/stdout until the client disconnects."""
    server = create_server(db)
    log = get_logger("server")
    log.info("serving over stdio", tools=[t.name for t in TOOLS])
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=__version__,
                capabilities=server.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )
