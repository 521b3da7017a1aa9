"""Sentry integration for error tracking and performance monitoring.

Sentry is initialized early in the CLI callback after logging setup. With
no SENTRY_DSN in the environment the SDK stays disabled and spans are no-ops.
"""

from __future__ import annotations

import os
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import sentry_sdk
import structlog

from postgres_mcp.__about__ import __version__

if TYPE_CHECKING:
    from collections.abc import Iterator


def setup_sentry(environment: str = "local") -> bool:
    """Initialize Sentry from SENTRY_DSN. Returns True when reporting is enabled."""
    dsn = os.environ.get("SENTRY_DSN") or None
    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.03,
        environment=os.environ.get("SENTRY_ENVIRONMENT", environment),
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
    return dsn is not None


def span_description(sql: str) -> str:
    """Whitespace-normalized statement, truncated for span descriptions."""
    return " ".join(sql.split())[:100]


@contextmanager
def query_span(sql: str) -> Iterator[Any]:
    """Sentry span around one SQL round trip, timed and logged at debug."""
    log = structlog.get_logger()
    description = span_description(sql)
    log.debug("executing query", sql=description)
    with sentry_sdk.start_span(op="db.query", description=description) as span:
        start_time = time.monotonic()
        try:
            yield span
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            span.set_data("duration_ms", duration_ms)
            log.debug("query complete", duration_ms=f"{duration_ms:.1f}")
