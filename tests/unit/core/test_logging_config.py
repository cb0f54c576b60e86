"""
Unit Tests for Logging Configuration
"""
import json
import logging
import sys

import pytest

from bundle_repair.core.logging_config import (
    BundleRepairLogger,
    ContextualFormatter,
    JSONFormatter,
    generate_request_id,
    get_request_id,
    logger,
    set_request_id,
)


@pytest.fixture
def request_id():
    """Set a request id for the duration of one test"""
    set_request_id("req12345")
    yield "req12345"
    set_request_id("")


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("bundle_repair", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestId:
    """Tests for request id context"""

    def test_generate(self):
        """Test ids are short and unique"""
        first, second = generate_request_id(), generate_request_id()

        assert len(first) == 8
        assert first != second

    def test_set_and_get(self, request_id):
        """Test the context variable"""
        assert get_request_id() == request_id


class TestFormatters:
    """Tests for log formatters"""

    def test_json_formatter(self, request_id):
        """Test JSON output with request id and extra fields"""
        output = json.loads(JSONFormatter().format(_record(strategy="manual")))

        assert output["message"] == "hello"
        assert output["level"] == "INFO"
        assert output["request_id"] == request_id
        assert output["strategy"] == "manual"

    def test_json_formatter_exception(self):
        """Test exception details are included"""
        try:
            raise ValueError("bad value")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        output = json.loads(JSONFormatter().format(record))

        assert output["exception"]["type"] == "ValueError"
        assert output["exception"]["message"] == "bad value"

    def test_contextual_formatter_placeholder(self):
        """Test a missing request id renders as '-'"""
        set_request_id("")
        formatter = ContextualFormatter("[%(request_id)s] %(message)s")

        assert formatter.format(_record()) == "[-] hello"


class TestBundleRepairLogger:
    """Tests for the structured logger"""

    def test_logger_class(self):
        """Test the shared logger is the custom class"""
        assert isinstance(logger, BundleRepairLogger)
        assert logger.name == "bundle_repair"

    def test_log_strategy_event(self, caplog):
        """Test strategy events carry structured fields"""
        with caplog.at_level(logging.INFO, logger="bundle_repair"):
            logger.log_strategy_event("structural", "failed", error_code="NO_DOCUMENT_REGION")

        record = caplog.records[-1]
        assert record.event_type == "strategy"
        assert record.strategy_event == "failed"
        assert record.error_code == "NO_DOCUMENT_REGION"

    def test_log_performance_threshold(self, caplog):
        """Test slow operations are logged as warnings"""
        with caplog.at_level(logging.DEBUG, logger="bundle_repair"):
            logger.log_performance("bundle_extraction", 5000.0)
            logger.log_performance("bundle_extraction", 1.0)

        slow, fast = caplog.records[-2:]
        assert slow.levelno == logging.WARNING
        assert slow.exceeded_threshold is True
        assert fast.levelno == logging.DEBUG

    def test_log_error_with_context(self, caplog):
        """Test errors are logged with their type"""
        with caplog.at_level(logging.ERROR, logger="bundle_repair"):
            try:
                raise RuntimeError("boom")
            except RuntimeError as e:
                logger.log_error_with_context(e, context="manual strategy")

        record = caplog.records[-1]
        assert record.error_type == "RuntimeError"
        assert "manual strategy" in record.getMessage()
