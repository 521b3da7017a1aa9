"""Exception hierarchy for postgres-mcp.

All exceptions carry an exit_code for CLI return value mapping.
Raised out of the tool layer they are hard tool errors; recoverable SQL
faults are never raised, they come back as error-flagged envelopes.
"""

from postgres_mcp.core.exit_codes import ExitCode


class PgMcpError(Exception):
    """Base exception for all postgres-mcp errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NetworkError(PgMcpError):
    """Connection failures, unreachable host, pool checkout failures."""

    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Pool checkout or connection timeout."""

    exit_code: int = ExitCode.TIMEOUT


class PoolNotInitializedError(NetworkError):
    """Tool invoked before the pool was opened, or after it was closed."""


class InputError(PgMcpError):
    """Invalid tool arguments, unknown tool name."""

    exit_code: int = ExitCode.INPUT_ERROR


class ConfigError(PgMcpError):
    """Missing or malformed connection configuration."""

    exit_code: int = ExitCode.CONFIG_ERROR


class ScanError(PgMcpError):
    """A row could not be decoded into the generic value domain."""

    exit_code: int = ExitCode.OUTPUT_ERROR


class IterationError(PgMcpError):
    """The cursor reported a fault while fetching rows."""


class CatalogError(PgMcpError):
    """A catalog introspection statement failed."""


class TransactionError(PgMcpError):
    """The guarded EXPLAIN transaction could not be started."""
