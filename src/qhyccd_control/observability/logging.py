"""Structured logging for qhyccd-control.

Builds on Python's standard logging module with:
- Structured data support (key-value pairs in logs)
- JSON formatting option for log aggregation
- Context management for per-camera / per-operation fields

Every native status code that is translated into an exception is logged
here first, so a capture session leaves an audit trail even when the caller
swallows the error.

Example:
    logger = get_logger(__name__)

    logger.info("SDK initialized")
    logger.error("Native call failed", operation="set_roi", code=0xFFFFFFFF)

    with LogContext(camera="QHY178M-222b16468c5966524"):
        logger.info("Exposure started", exposure_us=2000)

    configure_logging(json_format=True)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any, cast

ROOT_LOGGER_NAME = "qhyccd_control"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "qhyccd_log_context", default={}
)


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword fields.

    ``logger.info("Frame read", width=3056, height=2048)`` stores the keyword
    arguments on the record as ``structured_data``, merged on top of any
    active LogContext values.
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None = None,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        """Log a message, capturing keyword arguments as structured data.

        The merge order is: LogContext values < explicit kwargs, so the
        fields given at the call site win over ambient context.

        Args:
            level: Numeric log level.
            msg: Log message, may contain % placeholders.
            args: Arguments for % formatting.
            exc_info: Exception info, as for the standard logger.
            extra: Extra attributes for the LogRecord. The
                ``structured_data`` key is added/overwritten.
            stack_info: Include a stack trace.
            stacklevel: Frames to skip when resolving the caller.
            **kwargs: Structured fields (e.g. ``code``, ``operation``).
        """
        structured_data = {**_log_context.get(), **kwargs}

        if extra is None:
            extra = {}
        extra["structured_data"] = structured_data

        super()._log(
            level,
            msg,
            args if args is not None else (),
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# =============================================================================
# Formatters
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Human-readable formatter with structured data.

    Format: timestamp - name - level - message | key=value key=value
    """

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Create the formatter.

        Args:
            fmt: Format string; defaults to
                ``'%(asctime)s - %(name)s - %(levelname)s - %(message)s'``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append `` | key=value`` pairs when True.
        """
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, appending structured fields if present."""
        base = super().format(record)

        if not self.include_structured:
            return base

        structured = getattr(record, "structured_data", {})
        if not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """JSON formatter producing one object per line (NDJSON).

    Keys: timestamp (UTC ISO 8601), level, logger, message, exception (when
    present) and every structured field at top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_dict.update(getattr(record, "structured_data", {}))

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


def _format_value(value: Any) -> str:
    """Format a value for key=value output.

    - None -> 'null'
    - strings with spaces are quoted
    - dicts/lists become JSON
    - everything else uses str()

    Example:
        >>> _format_value("QHY178M test")
        '"QHY178M test"'
        >>> _format_value(None)
        'null'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if " " in value:
            return f'"{value}"'
        return value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# Context Management
# =============================================================================


class LogContext:
    """Context manager adding key-value pairs to every log record inside it.

    Backed by contextvars, so nesting works and threads do not leak fields
    into each other.

    Usage:
        with LogContext(camera="QHY178M-222b"):
            logger.info("Opening")
            with LogContext(operation="initialize"):
                logger.info("Calibrating")  # both fields present
    """

    def __init__(self, **kwargs: Any) -> None:
        self._kwargs = kwargs
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        current = _log_context.get()
        self._token = _log_context.set({**current, **self._kwargs})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Configure the qhyccd-control logging system.

    Installs a single stream handler on the ``qhyccd_control`` logger. The
    call is idempotent: later calls are ignored unless ``force=True``.
    Protected by a lock so concurrent first use is safe.

    Args:
        level: Minimum level, int or name ('DEBUG', 'INFO', ...).
        json_format: Use JSONFormatter instead of StructuredFormatter.
        stream: Output stream; defaults to sys.stderr.
        include_structured: Append key=value pairs in text mode.
        force: Drop existing handlers and reconfigure.

    Example:
        >>> import io
        >>> buffer = io.StringIO()
        >>> configure_logging(level="DEBUG", stream=buffer, force=True)
    """
    with _config_lock:
        if force:
            _reset_logging_impl()
        _configure_logging_impl(level, json_format, stream, include_structured)


def _configure_logging_impl(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
) -> None:
    """Internal implementation of configure_logging (assumes lock is held)."""
    global _configured

    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include_structured)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def _reset_logging_impl() -> None:
    """Internal implementation of reset_logging (assumes lock is held)."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    _configured = False


def reset_logging() -> None:
    """Return logging to the unconfigured state (used by tests)."""
    with _config_lock:
        _reset_logging_impl()


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger, configuring defaults on first use.

    Args:
        name: Logger name, normally ``__name__``.

    Returns:
        StructuredLogger accepting keyword fields.

    Example:
        >>> logger = get_logger("qhyccd_control.session")
        >>> logger.info("Camera opened", camera="QHY178M")
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _configure_logging_impl()

    # Loggers created before setLoggerClass() would be plain Loggers; every
    # module obtains its logger through here, after configuration.
    return cast(StructuredLogger, logging.getLogger(name))
