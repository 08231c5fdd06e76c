import io
import json
import logging
import time

from alpha_engine.infra.logging import (
    AsyncLogHandler,
    LatencyMeasurement,
    LatencyTracker,
    LogCategory,
    StructuredFormatter,
    get_logger,
)


def test_structured_formatter_emits_json():
    record = logging.LogRecord("alpha_engine", logging.INFO, __file__, 1, "hello", None, None)
    record.category = LogCategory.AUDIT.value
    record.symbol = "AAPL"
    record.extra_data = {"realized_pnl": 100.0}

    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "hello"
    assert data["category"] == "audit"
    assert data["symbol"] == "AAPL"
    assert data["data"] == {"realized_pnl": 100.0}


def test_latency_tracker_stats():
    tracker = LatencyTracker(window_size=10)
    for duration in range(1, 21):
        tracker.record(LatencyMeasurement("op", start_ns=0, end_ns=duration))

    stats = tracker.get_stats("op")
    assert stats["count"] == 10
    assert stats["min_ns"] == 11
    assert stats["max_ns"] == 20
    assert tracker.get_stats("missing") == {}


def test_measure_latency_records_operation():
    logger = get_logger()
    with logger.measure_latency("unit_test_op") as measurement:
        pass
    assert measurement.end_ns >= measurement.start_ns
    assert logger.get_latency_tracker().get_stats("unit_test_op")["count"] >= 1


class _FailingFormatter(logging.Formatter):
    def format(self, record):
        if record.getMessage() == "bad":
            raise ValueError("unformattable")
        return record.getMessage()


def _wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        time.sleep(0.01)
    return condition()


def test_async_handler_survives_formatting_failure():
    stream = io.StringIO()
    handler = AsyncLogHandler(stream=stream)
    handler.setFormatter(_FailingFormatter())
    try:
        handler.emit(logging.LogRecord("t", logging.INFO, __file__, 1, "bad", None, None))
        handler.emit(logging.LogRecord("t", logging.INFO, __file__, 1, "good", None, None))

        assert _wait_for(lambda: "good" in stream.getvalue())
        assert handler.failed == 1
    finally:
        handler.close()


def test_engine_logger_has_console_for_warnings():
    handlers = logging.getLogger("alpha_engine").handlers
    consoles = [
        h for h in handlers
        if type(h) is logging.StreamHandler
    ]
    assert len(consoles) == 1
    assert consoles[0].level == logging.WARNING
    assert any(isinstance(h, AsyncLogHandler) for h in handlers)
