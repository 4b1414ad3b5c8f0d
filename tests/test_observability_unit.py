"""Unit tests for structured logging."""

import json
import logging
import sys

import pytest

from recents_core.observability.logging import (
    AccountContext,
    JsonFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
)


def make_record(msg="Test message", level=logging.INFO, args=(), exc_info=None):
    return logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_log_record(self):
        parsed = json.loads(JsonFormatter().format(make_record()))

        assert parsed["message"] == "Test message"
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test.logger"
        assert parsed["service"] == "recents"
        assert "timestamp" in parsed
        assert "source" not in parsed

    def test_format_log_with_extra_fields(self):
        record = make_record()
        record.user_id = 42
        record.strategy = "classified"

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["user_id"] == 42
        assert parsed["strategy"] == "classified"

    def test_unserializable_extra_is_stringified(self):
        record = make_record()
        record.cursor = object()

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["cursor"].startswith("<object object")

    def test_format_log_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = make_record("Error occurred", level=logging.ERROR, exc_info=exc_info)
        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["level"] == "ERROR"
        assert "ValueError" in parsed["exception"]
        assert parsed["source"]["line"] == 42

    def test_format_log_with_message_args(self):
        record = make_record("Fetched %d messages for %s", args=(100, "is:dm"))

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["message"] == "Fetched 100 messages for is:dm"

    def test_custom_service_name(self):
        parsed = json.loads(JsonFormatter(service_name="mobile").format(make_record()))

        assert parsed["service"] == "mobile"


class TestAccountContext:
    """Tests for per-account log context."""

    def test_context_to_dict(self):
        context = AccountContext(realm_url="https://chat.example.com", user_id=7)

        assert context.to_dict() == {"realm_url": "https://chat.example.com", "user_id": 7}

    def test_empty_fields_are_omitted(self):
        assert AccountContext().to_dict() == {}

    def test_context_with_extra_data(self):
        context = AccountContext(user_id=7, extra={"strategy": "combined"})

        result = context.to_dict()

        assert result["strategy"] == "combined"
        assert result["user_id"] == 7


class TestStructuredLogger:
    """Tests for structured logger."""

    def test_fields_become_record_attributes(self, caplog):
        logger = StructuredLogger("recents.test")

        with caplog.at_level(logging.INFO, logger="recents.test"):
            logger.info(
                "Backfill run applied",
                context=AccountContext(user_id=7),
                queries=4,
            )

        record = caplog.records[-1]
        assert record.getMessage() == "Backfill run applied"
        assert record.queries == 4
        assert record.user_id == 7

    def test_error_with_exc_info(self, caplog):
        logger = StructuredLogger("recents.test")

        with caplog.at_level(logging.ERROR, logger="recents.test"):
            try:
                raise RuntimeError("listener broke")
            except RuntimeError:
                logger.error("Index listener failed", exc_info=True)

        assert caplog.records[-1].exc_info is not None

    def test_get_logger_caches_instances(self):
        assert get_logger("recents.cached") is get_logger("recents.cached")


class TestConfigureLogging:
    """Tests for root logger configuration."""

    def test_json_handler(self, restore_root_logger):
        configure_logging(level="DEBUG", json_format=True, service_name="recents-test")

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, JsonFormatter)
        assert formatter.service_name == "recents-test"

    def test_plain_handler(self, restore_root_logger):
        configure_logging(level="warning", json_format=False)

        root = restore_root_logger
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
