"""Uniform success/error envelope returned by every tool."""

from __future__ import annotations

import json
from typing import Any

from mcp import types
from pydantic import BaseModel, ConfigDict


class ToolEnvelope(BaseModel):
    """Display text plus a typed payload for programmatic consumers.

    is_error marks a recoverable SQL fault: the call itself succeeded and
    the agent gets to read the database's message.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    data: Any = None
    is_error: bool = False

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]]) -> ToolEnvelope:
        return cls(text=json.dumps(rows, indent=2), data=rows)

    @classmethod
    def from_text(cls, text: str) -> ToolEnvelope:
        return cls(text=text, data=text)

    @classmethod
    def failure(cls, message: str) -> ToolEnvelope:
        return cls(text=message, is_error=True)

    def to_call_tool_result(self) -> types.CallToolResult:
        structured = None if self.is_error else {"result": self.data}
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=self.text)],
            structuredContent=structured,
            isError=self.is_error,
        )
