"""Observability module for qhyccd-control.

Provides structured logging for SDK lifecycle, session and capture events.

Example:
    from qhyccd_control.observability import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(camera="QHY178M-222b16468c5966524"):
        logger.info("Exposure started", exposure_us=2000)
"""

from qhyccd_control.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)

__all__ = [
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
]
