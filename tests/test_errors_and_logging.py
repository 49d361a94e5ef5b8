"""
Tests for error types and logging helpers.
"""

import json
import logging

from logvec.errors import ConfigError, DimensionMismatchError, LogVecError, MissingFieldError, ParseError
from logvec.utils.logging_setup import JSONFormatter, SecretRedactionFilter, get_logger, log_skip, setup_logging


class TestErrors:
    """Test error messages and structured details."""

    def test_parse_error(self):
        error = ParseError("record has no fields", 42, entry_index=3)

        assert isinstance(error, LogVecError)
        assert str(error) == "record has no fields (at byte 42)"
        assert error.details == {"reason": "record has no fields", "byte_offset": 42, "entry_index": 3}

    def test_missing_field_error(self):
        error = MissingFieldError("MESSAGE", entry_index=7, byte_offset=100)
        assert "MESSAGE" in str(error)
        assert "entry 7" in str(error)
        assert error.details["byte_offset"] == 100

    def test_dimension_mismatch_error(self):
        error = DimensionMismatchError(128, 64, group_key="web")
        assert str(error) == "Dimension mismatch: expected 128, got 64 for group 'web'"
        assert error.details["group_key"] == "web"

    def test_config_error(self):
        error = ConfigError("bad", option="dimension", details={"value": 0})
        assert isinstance(error, ValueError)
        assert error.details == {"value": 0, "option": "dimension"}


def make_record(msg, args=None):
    return logging.LogRecord("logvec.test", logging.WARNING, __file__, 1, msg, args, None)


class TestLogging:
    """Test logging configuration helpers."""

    def test_redaction(self):
        record = make_record("connect failed password=hunter2 host=db")
        SecretRedactionFilter().filter(record)
        assert "hunter2" not in record.getMessage()
        assert "password=***REDACTED***" in record.getMessage()

    def test_redaction_of_args(self):
        record = make_record("message: %s", ("token: abc123",))
        SecretRedactionFilter().filter(record)
        assert "abc123" not in record.getMessage()

    def test_json_formatter(self):
        record = make_record("skipped")
        record.extra_fields = {"count": 2}
        record.byte_offset = 17

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "skipped"
        assert payload["level"] == "WARNING"
        assert payload["count"] == 2
        assert payload["byte_offset"] == 17

    def test_setup_logging_writes_json_file(self, tmp_path):
        logger = setup_logging("logvec-test", level="INFO", log_dir=tmp_path,
                               console=False, file=True)
        try:
            log_skip(logger, "record", 1, ValueError("broken"))
            for handler in logger.handlers:
                handler.flush()

            files = list(tmp_path.glob("logvec_*.jsonl"))
            assert len(files) == 1
            line = json.loads(files[0].read_text().splitlines()[0])
            assert line["message"] == "Skipped record (#1): broken"
            assert line["skipped"] == "record"
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_redaction_applies_to_child_loggers(self, tmp_path):
        """Module loggers propagate to the package logger and are still masked."""
        logger = setup_logging("logvec", level="INFO", log_dir=tmp_path, console=False, file=True)
        try:
            get_logger("logvec.journal.parser").warning("login failed password=hunter2")
            for handler in logger.handlers:
                handler.flush()

            text = next(tmp_path.glob("logvec_*.jsonl")).read_text()
            assert "hunter2" not in text
            assert "password=***REDACTED***" in text
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
            logger.filters.clear()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)
