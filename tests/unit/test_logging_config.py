"""Tests for logging setup and formatters."""

from __future__ import annotations

import json
import logging

import pytest

from peerrelay.exceptions import TrackerError
from peerrelay.logging_config import (
    ColoredFormatter,
    CorrelationFilter,
    StructuredFormatter,
    get_correlation_id,
    log_exception,
    set_correlation_id,
    setup_logging,
)
from peerrelay.models import LogLevel, ObservabilityConfig

pytestmark = [pytest.mark.unit]


def make_record(msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord("peerrelay.test", logging.INFO, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_correlation_id_round_trip():
    corr = set_correlation_id()
    assert len(corr) == 12
    assert get_correlation_id() == corr
    assert set_correlation_id("abc") == "abc"
    assert get_correlation_id() == "abc"


def test_correlation_filter_adds_id():
    set_correlation_id("req-1")
    record = make_record()
    assert CorrelationFilter().filter(record)
    assert record.correlation_id == "req-1"


def test_structured_formatter_includes_extras():
    record = make_record(correlation_id="req-2", tracker="http://t.example/announce")
    entry = json.loads(StructuredFormatter().format(record))
    assert entry["message"] == "hello world"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "peerrelay.test"
    assert entry["correlation_id"] == "req-2"
    assert entry["tracker"] == "http://t.example/announce"
    assert "msg" not in entry


def test_colored_formatter_leaves_record_untouched():
    record = make_record(correlation_id="req-3")
    formatter = ColoredFormatter("%(levelname)s %(correlation_id)s %(message)s")
    output = formatter.format(record)
    assert "[req-3]" in output
    assert "\033[32m" in output
    assert record.levelname == "INFO"


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "peerrelay.log"
    setup_logging(
        ObservabilityConfig(
            log_level=LogLevel.DEBUG, log_file=str(log_file), structured_logging=True
        )
    )

    logging.getLogger("peerrelay.tracker").debug("announce sent")
    for handler in logging.getLogger("peerrelay").handlers:
        handler.flush()

    entry = json.loads(log_file.read_text().splitlines()[-1])
    assert entry["message"] == "announce sent"
    assert entry["level"] == "DEBUG"


def test_log_exception_includes_details(caplog):
    logger = logging.getLogger("relaytest.exc")
    try:
        raise TrackerError("boom", {"url": "http://t.example/announce"})
    except TrackerError as e:
        with caplog.at_level(logging.ERROR, logger="relaytest.exc"):
            log_exception(logger, e, "announce failed")

    record = caplog.records[-1]
    assert record.getMessage() == "announce failed: boom"
    assert record.details == {"url": "http://t.example/announce"}
    assert record.exc_info is not None
