"""
Module: tests/unit/test_logging.py

What:
    Check the JSON line format produced by ``JsonLogger``.

Why:
    Decision logs are parsed by other tools; the canonical keys and the
    conversion of datetimes and durations must not drift.
"""

import io
import json
from datetime import datetime, timedelta

from refresh_retry.core.engine import Event
from refresh_retry.utils.logging import JsonLogger, get_logger


def _records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_payload_carries_canonical_fields():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="refresh_retry.test", clock=lambda: datetime(2025, 1, 1))
    logger.info("decision", attempt_no=1)
    logger.warning("slow")
    logger.error("rejected", kind="InvalidEvent")

    records = _records(stream)
    assert records[0] == {
        "ts": "2025-01-01T00:00:00",
        "lvl": "INFO",
        "msg": "decision",
        "component": "refresh_retry.test",
        "attempt_no": 1,
    }
    assert records[1]["lvl"] == "WARN"
    assert records[2]["kind"] == "InvalidEvent"


def test_extras_are_converted():
    stream = io.StringIO()
    JsonLogger(stream=stream).info(
        "decision",
        refresh_at=datetime(2025, 1, 1, 2),
        timeout=timedelta(minutes=10),
        event=Event.START,
        delays=[timedelta(seconds=30), None],
    )
    record = _records(stream)[0]
    assert record["refresh_at"] == "2025-01-01T02:00:00"
    assert record["timeout"] == 600.0
    assert record["event"] == "start"
    assert record["delays"] == [30.0, None]
    assert record["component"] == "refresh_retry"


def test_get_logger_binds_component_and_stream():
    stream = io.StringIO()
    logger = get_logger("refresh_retry.cli", stream=stream)
    logger.info("hello")
    assert _records(stream)[0]["component"] == "refresh_retry.cli"
