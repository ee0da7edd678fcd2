"""Tests for the logging service."""

import json
import logging
import os
from collections.abc import Iterator
from io import StringIO
from pathlib import Path
from unittest.mock import patch

import pytest
from hypothesis import given, settings, strategies as st

from bggsync.services.logging import LoggingService, setup_logging


@pytest.fixture(autouse=True)
def reset_root_handlers() -> Iterator[None]:
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()


def configure_capturing(service: LoggingService) -> StringIO:
    """Configure the service with stderr redirected into a buffer."""
    stream = StringIO()
    with patch("sys.stderr", stream):
        service.configure()
    return stream


class TestLoggingService:
    """Test cases for LoggingService."""

    def test_development_logging_format(self) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            service = LoggingService(log_level="INFO")
            stream = configure_capturing(service)

            service.get_logger("test").info("test message", key="value")

        output = stream.getvalue()
        assert "test message" in output
        assert not output.strip().startswith("{")

    def test_production_logging_format(self) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            service = LoggingService(log_level="INFO")
            stream = configure_capturing(service)

            service.get_logger("test").info("test message", key="value")

        parsed = json.loads(stream.getvalue().strip().splitlines()[0])
        assert parsed["event"] == "test message"
        assert parsed["key"] == "value"
        assert parsed["level"] == "info"
        assert "timestamp" in parsed

    def test_console_does_not_use_stdout(self) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            service = LoggingService(log_level="INFO")
            stdout = StringIO()
            with patch("sys.stdout", stdout):
                configure_capturing(service)
                service.get_logger("test").info("only on stderr")

        assert stdout.getvalue() == ""

    def test_quiet_mode_hides_info(self) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            service = LoggingService(log_level="DEBUG", quiet=True)
            stream = configure_capturing(service)

            logger = service.get_logger("test")
            logger.info("routine progress")
            logger.warning("something odd")

        output = stream.getvalue()
        assert "routine progress" not in output
        assert "something odd" in output

    def test_http_library_loggers_are_quieted(self) -> None:
        configure_capturing(LoggingService(log_level="INFO"))

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_file_logging_setup(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            service = LoggingService(log_level="INFO", log_dir=tmp_path)
            configure_capturing(service)

            service.get_logger("test").info("test file message", data="test")

        sync_log = tmp_path / "sync.log"
        assert sync_log.exists()
        assert (tmp_path / "error.log").exists()

        parsed = json.loads(sync_log.read_text().strip().splitlines()[-1])
        assert parsed["event"] == "test file message"
        assert parsed["data"] == "test"

    def test_error_file_logging(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            service = LoggingService(log_level="DEBUG", log_dir=tmp_path)
            configure_capturing(service)

            logger = service.get_logger("test")
            logger.info("not an error")
            logger.error("test error message", status_code=503)

        lines = (tmp_path / "error.log").read_text().strip().splitlines()
        assert len(lines) == 1
        parsed = json.loads(lines[0])
        assert parsed["event"] == "test error message"
        assert parsed["status_code"] == 503
        assert parsed["level"] == "error"


class TestStructuredLoggingProperties:
    """Property-based tests for structured logging consistency."""

    @given(
        log_level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        logger_name=st.text(min_size=1, max_size=30).filter(lambda x: x.isidentifier() and x not in ("httpx", "httpcore")),
        message=st.text(min_size=1, max_size=200),
        context_data=st.dictionaries(
            keys=st.text(min_size=1, max_size=20).filter(
                lambda x: x.isidentifier()
                and x not in ("event", "level", "timestamp", "logger", "exc_info", "stack_info", "positional_args", "exception")
            ),
            values=st.one_of(
                st.text(max_size=100),
                st.integers(min_value=-(2**53), max_value=2**53),
                st.booleans(),
            ),
            max_size=5,
        ),
    )
    @settings(deadline=None)
    def test_structured_logging_consistency(
        self,
        log_level: str,
        logger_name: str,
        message: str,
        context_data: dict[str, str | int | bool],
    ) -> None:
        """Every event keeps its message, level, logger name and key-value context."""
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            service = LoggingService(log_level="DEBUG")
            stream = configure_capturing(service)

            getattr(service.get_logger(logger_name), log_level.lower())(message, **context_data)

        parsed = json.loads(stream.getvalue().strip().splitlines()[0])
        assert parsed["event"] == message
        assert parsed["level"].upper() == log_level
        assert parsed["logger"] == logger_name
        assert parsed["timestamp"].endswith("Z")
        for key, value in context_data.items():
            assert parsed[key] == value


def test_setup_logging_function(tmp_path: Path) -> None:
    with patch.dict(os.environ, {}):
        stream = StringIO()
        with patch("sys.stderr", stream):
            service = setup_logging(log_level="DEBUG", log_dir=tmp_path, environment="production", quiet=True)

        assert isinstance(service, LoggingService)
        assert service.quiet is True
        assert os.environ["ENVIRONMENT"] == "production"

    service.get_logger("test_setup").info("setup test", component="test")
    assert "setup test" in (tmp_path / "sync.log").read_text()
    assert "setup test" not in stream.getvalue()
