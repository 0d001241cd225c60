"""Tests for the structured logging layer."""

import io
import json
import logging
import sys

from qhyccd_control.observability.logging import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    _format_value,
    configure_logging,
    get_logger,
    reset_logging,
)


def _record(msg: str = "hello", **structured) -> logging.LogRecord:
    record = logging.LogRecord(
        name="qhyccd_control.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if structured:
        record.structured_data = structured
    return record


class TestStructuredLogger:
    """Tests for keyword-field logging."""

    def test_get_logger_returns_structured_logger(self) -> None:
        """Verifies module loggers accept keyword fields.

        Business context:
        Every module logs with ``logger.info("msg", camera=...)``; a plain
        Logger would raise TypeError on the first such call.
        """
        assert isinstance(get_logger("qhyccd_control.test_logger"), StructuredLogger)

    def test_keyword_fields_reach_output(self, log_stream: io.StringIO) -> None:
        logger = get_logger("qhyccd_control.test_fields")

        logger.info("Camera opened", camera="QHY178M", handle=4096)

        line = log_stream.getvalue().strip()
        assert "Camera opened | camera=QHY178M handle=4096" in line
        assert "INFO" in line

    def test_level_filtering(self, log_stream: io.StringIO) -> None:
        configure_logging(level="WARNING", stream=log_stream, force=True)
        logger = get_logger("qhyccd_control.test_level")

        logger.info("hidden")
        logger.warning("shown")

        output = log_stream.getvalue()
        assert "hidden" not in output
        assert "shown" in output

    def test_printf_args_still_work(self, log_stream: io.StringIO) -> None:
        get_logger("qhyccd_control.test_args").info("found %d cameras", 2)

        assert "found 2 cameras" in log_stream.getvalue()


class TestFormatters:
    """Tests for text and JSON output."""

    def test_text_without_fields(self) -> None:
        formatter = StructuredFormatter(fmt="%(message)s")

        assert formatter.format(_record()) == "hello"

    def test_text_fields_can_be_disabled(self) -> None:
        formatter = StructuredFormatter(fmt="%(message)s", include_structured=False)

        assert formatter.format(_record(camera="X")) == "hello"

    def test_json_output(self) -> None:
        """Verifies JSON lines carry message, level and fields at top level."""
        payload = json.loads(JSONFormatter().format(_record("saved", path="/tmp/f.png")))

        assert payload["message"] == "saved"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "qhyccd_control.test"
        assert payload["path"] == "/tmp/f.png"
        assert payload["timestamp"].endswith("+00:00")

    def test_json_includes_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed")
            record.exc_info = sys.exc_info()

        payload = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in payload["exception"]

    def test_format_value(self) -> None:
        assert _format_value(None) == "null"
        assert _format_value("two words") == '"two words"'
        assert _format_value("word") == "word"
        assert _format_value([0, 0, 64, 48]) == "[0, 0, 64, 48]"
        assert _format_value(2.5) == "2.5"


class TestLogContext:
    """Tests for context-scoped fields."""

    def test_nested_context(self, log_stream: io.StringIO) -> None:
        logger = get_logger("qhyccd_control.test_ctx")

        with LogContext(camera="QHY178M"):
            with LogContext(operation="initialize"):
                logger.info("inner")
            logger.info("outer")
        logger.info("none")

        lines = log_stream.getvalue().splitlines()
        assert "camera=QHY178M operation=initialize" in lines[0]
        assert "camera=QHY178M" in lines[1]
        assert "operation" not in lines[1]
        assert "|" not in lines[2]

    def test_call_fields_override_context(self, log_stream: io.StringIO) -> None:
        logger = get_logger("qhyccd_control.test_override")

        with LogContext(camera="A"):
            logger.info("msg", camera="B")

        assert "camera=B" in log_stream.getvalue()


class TestConfigureLogging:
    """Tests for idempotent configuration."""

    def test_second_configure_is_ignored(self) -> None:
        first, second = io.StringIO(), io.StringIO()
        try:
            configure_logging(stream=first, force=True)
            configure_logging(stream=second)

            get_logger("qhyccd_control.test_idem").warning("once")

            assert "once" in first.getvalue()
            assert second.getvalue() == ""
            assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1
        finally:
            reset_logging()

    def test_json_mode(self) -> None:
        buffer = io.StringIO()
        try:
            configure_logging(json_format=True, stream=buffer, force=True)
            get_logger("qhyccd_control.test_json").info("frame", size=6144)

            payload = json.loads(buffer.getvalue())
            assert payload["size"] == 6144
        finally:
            reset_logging()

    def test_reset_removes_handlers(self) -> None:
        configure_logging(stream=io.StringIO(), force=True)

        reset_logging()

        assert logging.getLogger(ROOT_LOGGER_NAME).handlers == []
