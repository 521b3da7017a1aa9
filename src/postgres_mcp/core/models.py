"""Data models for postgres-mcp.

Pydantic models for query results, tool arguments and the resolved EXPLAIN
option set.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Column name -> JSON-ready value, in select-list order.
GenericRow = dict[str, Any]


class ColumnMeta(BaseModel):
    """Metadata for a single result column."""

    name: str
    type_oid: int
    type_name: str


class QueryResult(BaseModel):
    """Marshaled result of a SQL statement."""

    columns: list[ColumnMeta]
    rows: list[GenericRow]
    row_count: int
    status_message: str


class ExplainFormat(StrEnum):
    TEXT = "text"
    JSON = "json"
    XML = "xml"
    YAML = "yaml"


# ---------------------------------------------------------------------------
# Tool arguments
# ---------------------------------------------------------------------------


class _ToolArgs(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class QueryArgs(_ToolArgs):
    query: str = Field(description="SQL query to execute")


class TableListArgs(_ToolArgs):
    schema_name: str | None = Field(
        default=None, alias="schema", description="Schema name (default: public)"
    )


class TableArgs(_ToolArgs):
    table_name: str = Field(description="Name of the table")
    schema_name: str | None = Field(
        default=None, alias="schema", description="Schema name (default: public)"
    )


class ExplainAnalyzeArgs(_ToolArgs):
    """Raw explain arguments.

    Flags stay None when the caller omitted them so that an explicit false
    is never confused with "not given".
    """

    query: str = Field(description="SQL query to explain and analyze")
    analyze: bool | None = None
    verbose: bool | None = None
    costs: bool | None = None
    buffers: bool | None = None
    timing: bool | None = None
    summary: bool | None = None
    format: str | None = None


_EXPLAIN_DEFAULTS: dict[str, bool] = {
    "analyze": True,
    "costs": True,
    "timing": True,
    "summary": True,
    "buffers": False,
    "verbose": False,
}


class ExplainOptions(BaseModel):
    """Resolved EXPLAIN option set."""

    model_config = ConfigDict(frozen=True)

    analyze: bool = True
    verbose: bool = False
    costs: bool = True
    buffers: bool = False
    timing: bool = True
    summary: bool = True
    format: ExplainFormat = ExplainFormat.JSON

    @classmethod
    def from_args(cls, args: ExplainAnalyzeArgs) -> ExplainOptions:
        """Merge caller flags over the defaults; only omitted flags take a default."""
        resolved: dict[str, Any] = {}
        for flag, default in _EXPLAIN_DEFAULTS.items():
            given = getattr(args, flag)
            resolved[flag] = default if given is None else given
        resolved["format"] = coerce_format(args.format)
        return cls(**resolved)

    def clause(self) -> list[str]:
        """Option list in the fixed order ANALYZE, COSTS, SUMMARY, FORMAT, extras."""
        options = [
            f"ANALYZE {_sql_bool(self.analyze)}",
            f"COSTS {_sql_bool(self.costs)}",
            f"SUMMARY {_sql_bool(self.summary)}",
            f"FORMAT {self.format.value}",
        ]
        if self.verbose:
            options.append("VERBOSE true")
        if self.buffers:
            options.append("BUFFERS true")
        # TIMING is rejected by the server unless ANALYZE is on.
        if self.analyze:
            options.append(f"TIMING {_sql_bool(self.timing)}")
        return options


def coerce_format(value: str | None) -> ExplainFormat:
    """Unknown or empty formats fall back to json."""
    if value:
        try:
            return ExplainFormat(value)
        except ValueError:
            pass
    return ExplainFormat.JSON


def _sql_bool(value: bool) -> str:
    return "true" if value else "false"
