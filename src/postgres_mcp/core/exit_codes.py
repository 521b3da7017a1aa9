"""Process exit codes for the postgres-mcp CLI.

A running server only exits non-zero when startup fails or a hard tool
error escapes the protocol loop; SQL faults reported to the agent never
change the exit status.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    # Unexpected failure, and hard tool errors without a more specific code
    GENERAL_ERROR = 1
    # Bad flags; typer/click exit with this code on their own
    USAGE_ERROR = 2
    # Unknown tool or arguments that fail validation
    INPUT_ERROR = 3
    # A row value that cannot be represented in a tool result
    OUTPUT_ERROR = 4
    # Database unreachable at startup, or the pool is not open
    NETWORK_ERROR = 5
    # No pooled connection within the checkout timeout
    TIMEOUT = 6
    # Missing DATABASE_URL/POSTGRES_URL or invalid pool settings
    CONFIG_ERROR = 7
    # Ctrl-C, following the 128 + SIGINT shell convention
    INTERRUPTED = 130
