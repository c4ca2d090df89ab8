"""
Unit tests for structured log output.
"""

import json
import logging
import sys

from resume_ai.config.log_setup import JsonFormatter


def make_record(msg="Trying model: %s", args=("gemini-1.5-flash",), **extra):
    record = logging.LogRecord(
        name="resume_ai.core.orchestrator",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Test JsonFormatter output."""

    def test_basic_fields(self):
        payload = json.loads(JsonFormatter().format(make_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "resume_ai.core.orchestrator"
        assert payload["message"] == "Trying model: gemini-1.5-flash"
        assert payload["timestamp"].endswith("Z")
        assert "model" not in payload

    def test_structured_fields(self):
        record = make_record(model="gemini-1.5-flash", feature="job-matching", attempt=2, delay_ms=2000)
        payload = json.loads(JsonFormatter().format(record))

        assert payload["model"] == "gemini-1.5-flash"
        assert payload["feature"] == "job-matching"
        assert payload["attempt"] == 2
        assert payload["delay_ms"] == 2000

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        payload = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]
