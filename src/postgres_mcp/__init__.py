"""PostgreSQL tools for agents over the Model Context Protocol."""

from postgres_mcp.__about__ import __version__

__all__ = ["__version__"]
