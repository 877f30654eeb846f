"""
Tests for structured logging
"""
import json
import logging
import sys

from core.logging import JSONFormatter, SERVICE_NAME, build_formatter, setup_logging


def make_record(message="Running trends analysis", **extra):
    record = logging.LogRecord(
        name="services.training_analytics",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["service"] == SERVICE_NAME
        assert data["logger"] == "services.training_analytics"
        assert data["message"] == "Running trends analysis"
        assert "timestamp" in data

    def test_extra_fields_are_merged(self):
        record = make_record(extra_fields={"path": "/v1/analytics", "status_code": 200})

        data = json.loads(JSONFormatter().format(record))

        assert data["path"] == "/v1/analytics"
        assert data["status_code"] == 200

    def test_exception_is_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:

    def test_text_format(self):
        assert not isinstance(build_formatter("text"), JSONFormatter)
        assert isinstance(build_formatter("json"), JSONFormatter)

    def test_levels(self):
        root = logging.getLogger()
        previous_handlers = list(root.handlers)
        previous_level = root.level
        try:
            setup_logging(level="debug", log_format="text")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.handlers[:] = previous_handlers
            root.setLevel(previous_level)
