"""Unit tests for structured logging helpers."""

import json
import logging

from helix_hub.logging import (
    JSONFormatter,
    RequestContextFilter,
    TextFormatter,
    get_context_logger,
    get_request_id,
    reset_request_id,
    set_request_id,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("helix_hub.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestContext:
    """Tests for the correlation ID context."""

    def test_set_and_reset(self):
        assert get_request_id() is None

        token = set_request_id("abc123")
        assert get_request_id() == "abc123"

        reset_request_id(token)
        assert get_request_id() is None

    def test_filter_stamps_current_request(self):
        token = set_request_id("req-1")
        try:
            record = _record()
            assert RequestContextFilter().filter(record) is True
        finally:
            reset_request_id(token)

        assert record.request_id == "req-1"

    def test_filter_outside_request(self):
        record = _record()
        RequestContextFilter().filter(record)
        assert record.request_id == "-"


class TestFormatters:
    """Tests for JSON and text formatters."""

    def test_json_includes_extra_fields(self):
        record = _record(event="resolution_summary", group_count=3, request_id="-")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "helix_hub.test"
        assert entry["event"] == "resolution_summary"
        assert entry["group_count"] == 3
        assert "args" not in entry

    def test_text_includes_request_id(self):
        record = _record(request_id="req-9")
        assert "[req-9] helix_hub.test: hello world" in TextFormatter().format(record)


def test_context_logger_merges_extra(caplog):
    logger = get_context_logger("helix_hub.test", source="instructions")

    with caplog.at_level(logging.INFO, logger="helix_hub.test"):
        logger.info("fetched", extra={"count": 2})

    record = caplog.records[-1]
    assert record.source == "instructions"
    assert record.count == 2
