#!/usr/bin/env python3
"""Tests for the Logger module."""

import io
import logging
import threading

import pytest

from maskfs.infrastructure.logger import LogLevel, Logger, get_logger, set_global_logger


def capture(logger):
    """Attach a string handler and return its stream."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger.add_handler(handler)
    return stream


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_log_levels(self):
        """Test log level values match Python logging."""
        assert LogLevel.DEBUG == logging.DEBUG
        assert LogLevel.INFO == logging.INFO
        assert LogLevel.WARNING == logging.WARNING
        assert LogLevel.ERROR == logging.ERROR

    def test_log_level_ordering(self):
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARNING < LogLevel.ERROR


class TestLogger:
    """Tests for Logger class."""

    def test_logger_creation(self):
        """Test creating a logger."""
        logger = Logger(name="maskfs.test.create", level=LogLevel.DEBUG)

        assert logger.name == "maskfs.test.create"
        assert logger.get_level() == LogLevel.DEBUG
        assert not logger.logger.propagate

    def test_level_by_name(self):
        logger = Logger(name="maskfs.test.name", level="warning")
        assert logger.get_level() == LogLevel.WARNING

    def test_invalid_level_name(self):
        with pytest.raises(KeyError):
            Logger(name="maskfs.test.invalid", level="LOUD")

    def test_level_filters_messages(self):
        logger = Logger(name="maskfs.test.filter", level=LogLevel.WARNING, handlers=[])
        stream = capture(logger)

        logger.debug("hidden")
        logger.info("hidden")
        logger.warning("shown")

        assert stream.getvalue() == "WARNING shown\n"
        assert not logger.is_enabled_for("INFO")
        assert logger.is_enabled_for(LogLevel.ERROR)

    def test_context_is_appended(self):
        """Keyword context is rendered as key=value pairs."""
        logger = Logger(name="maskfs.test.ctx", level=LogLevel.DEBUG, handlers=[])
        stream = capture(logger)

        logger.info("Listening", port=9888, root="/srv")

        assert stream.getvalue() == "INFO Listening | port=9888 root=/srv\n"

    def test_add_context_nests(self):
        logger = Logger(name="maskfs.test.nest", level=LogLevel.DEBUG, handlers=[])
        stream = capture(logger)

        with logger.add_context(request_id="abc"):
            with logger.add_context(path="main.go"):
                logger.debug("inner")
            logger.debug("outer")
        logger.debug("none")

        assert stream.getvalue().splitlines() == [
            "DEBUG inner | request_id=abc path=main.go",
            "DEBUG outer | request_id=abc",
            "DEBUG none",
        ]

    def test_context_is_thread_local(self):
        """Context pushed on one thread never shows on another."""
        logger = Logger(name="maskfs.test.threads", level=LogLevel.DEBUG, handlers=[])
        stream = capture(logger)

        def other_thread():
            logger.info("from thread")

        with logger.add_context(request_id="main"):
            thread = threading.Thread(target=other_thread)
            thread.start()
            thread.join()

        assert "INFO from thread\n" in stream.getvalue()
        assert "request_id" not in stream.getvalue()

    def test_exception_logs_traceback(self):
        logger = Logger(name="maskfs.test.exc", level=LogLevel.INFO, handlers=[])
        stream = capture(logger)

        try:
            raise ValueError("bad value")
        except ValueError as e:
            logger.exception("Failed", e, path="x")

        output = stream.getvalue()
        assert output.startswith(
            "ERROR Failed | path=x exception_type=ValueError exception_message=bad value"
        )
        assert "Traceback" in output

    def test_record_carries_context(self):
        logger = Logger(name="maskfs.test.record", level=LogLevel.DEBUG, handlers=[])
        records = []

        class Collect(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger.add_handler(Collect())
        logger.info("msg", key="value")

        assert records[0].context == {"key": "value"}

    def test_log_file(self, temp_dir):
        log_file = temp_dir / "maskfs.log"
        logger = Logger(name="maskfs.test.file", level=LogLevel.INFO, handlers=[], log_file=log_file)

        logger.info("to file", port=1)
        for handler in logger.logger.handlers:
            handler.flush()

        assert "to file | port=1" in log_file.read_text()

    def test_set_level(self):
        logger = Logger(name="maskfs.test.set", level=LogLevel.INFO)
        logger.set_level("DEBUG")
        assert logger.get_level() == LogLevel.DEBUG


class TestGlobalLogger:
    """Tests for the module-level logger."""

    def test_set_and_get(self):
        logger = Logger(name="maskfs")
        set_global_logger(logger)
        assert get_logger() is logger

    def test_get_other_name_creates_logger(self):
        set_global_logger(Logger(name="maskfs"))
        assert get_logger("maskfs.other").name == "maskfs.other"
