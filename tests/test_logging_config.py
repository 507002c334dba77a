"""
Tests for structured logging
"""

import io
import json
import logging

from account_core.logging_config import JSONFormatter, log_action, setup_logging


def capture_logger(name: str):
    logger = setup_logging("DEBUG", logger_name=name)
    stream = io.StringIO()
    logger.handlers[0].setStream(stream)
    return logger, stream


class TestStructuredLogging:

    def test_log_action_fields(self):
        logger, stream = capture_logger("account_core.tests.fields")

        log_action(logger, "warning", "Overdraft fee charged", action="overdraft_fee",
                   resource="account:CHK001", correlation_id="req-1",
                   extra={"fee": "35.00"})

        entry = json.loads(stream.getvalue())
        assert entry["level"] == "WARNING"
        assert entry["message"] == "Overdraft fee charged"
        assert entry["action"] == "overdraft_fee"
        assert entry["resource"] == "account:CHK001"
        assert entry["correlation_id"] == "req-1"
        assert entry["extra"] == {"fee": "35.00"}

    def test_exception_is_formatted(self):
        logger, stream = capture_logger("account_core.tests.exc")

        try:
            raise RuntimeError("rollback failed")
        except RuntimeError as e:
            log_action(logger, "critical", "Transfer rollback failed", exc_info=e)

        entry = json.loads(stream.getvalue())
        assert "RuntimeError: rollback failed" in entry["exception"]

    def test_disabled_level_is_skipped(self):
        logger, stream = capture_logger("account_core.tests.level")
        logger.setLevel(logging.ERROR)

        log_action(logger, "info", "ignored")

        assert stream.getvalue() == ""

    def test_text_format(self):
        logger = setup_logging("INFO", logger_name="account_core.tests.text", fmt="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
