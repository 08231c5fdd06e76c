"""
Structured Logging for the Alpha Engine
=======================================

This module implements logging suited to a signal/risk engine:
- Categorized records (market data, signal, risk, audit, ...)
- JSON structured output for machine parsing
- A background handler so the tick path never blocks on I/O
- Latency measurement for signal computations

LOG STREAMS:
============

1. AUDIT: every position opened or closed, with realized PnL and the
   reason for the close (stop-loss, take-profit, dynamic-stop, manual,
   emergency). This is the push interface external reporting consumes.
2. RISK: limit denials, emergency stops, risk-limit reloads.
3. SIGNAL: strong factor / pair signals, at DEBUG level.
4. PERFORMANCE: computation latency from measure_latency().

The engine itself performs no I/O; records are formatted and written by a
worker thread.
"""

import logging
import queue
import sys
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Deque
import json


class LogCategory(Enum):
    """
    Log categories for filtering and routing.
    """
    MARKET_DATA = "market_data"
    SIGNAL = "signal"
    RISK = "risk"
    PERFORMANCE = "performance"
    SYSTEM = "system"
    AUDIT = "audit"


@dataclass
class LatencyMeasurement:
    """
    Captures latency for a specific operation.

    Uses time.perf_counter_ns(), nanosecond resolution.
    """
    operation: str
    start_ns: int
    end_ns: int = 0
    category: LogCategory = LogCategory.PERFORMANCE
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ns(self) -> int:
        return self.end_ns - self.start_ns

    @property
    def duration_us(self) -> float:
        return self.duration_ns / 1000.0


class LatencyTracker:
    """
    Tracks latency statistics per operation over a rolling window.
    """

    def __init__(self, window_size: int = 10000):
        self._window_size = window_size
        self._measurements: Dict[str, Deque[int]] = {}
        self._lock = threading.Lock()

    def record(self, measurement: LatencyMeasurement) -> None:
        """Record a latency measurement."""
        with self._lock:
            if measurement.operation not in self._measurements:
                self._measurements[measurement.operation] = deque(maxlen=self._window_size)
            self._measurements[measurement.operation].append(measurement.duration_ns)

    def get_stats(self, operation: str) -> Dict[str, float]:
        """
        Get latency statistics for an operation.

        Returns count, min, max, mean and p50/p99 in nanoseconds.
        """
        with self._lock:
            return self._stats_unlocked(operation)

    def _stats_unlocked(self, operation: str) -> Dict[str, float]:
        if not self._measurements.get(operation):
            return {}

        measurements = sorted(self._measurements[operation])
        n = len(measurements)

        return {
            "count": n,
            "min_ns": measurements[0],
            "max_ns": measurements[-1],
            "mean_ns": sum(measurements) / n,
            "p50_ns": measurements[n // 2],
            "p99_ns": measurements[int(n * 0.99)] if n >= 100 else measurements[-1],
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        """Get statistics for all tracked operations."""
        with self._lock:
            return {op: self._stats_unlocked(op) for op in self._measurements}


class AsyncLogHandler(logging.Handler):
    """
    Log handler that hands records to a background writer thread.

    The queue is bounded; when it is full the record is dropped and counted
    rather than blocking the caller.
    """

    def __init__(self, stream=None, maxsize: int = 100000):
        super().__init__()
        self._stream = stream or sys.stderr
        self._queue: "queue.Queue[logging.LogRecord]" = queue.Queue(maxsize=maxsize)
        self._shutdown = threading.Event()
        self.dropped = 0
        self.failed = 0
        self._worker = threading.Thread(target=self._process_logs, daemon=True)
        self._worker.start()

    def emit(self, record: logging.LogRecord) -> None:
        """Queue log record for the writer thread."""
        try:
            self._queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1

    def _process_logs(self) -> None:
        while not self._shutdown.is_set():
            try:
                record = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._stream.write(self.format(record) + "\n")
                self._stream.flush()
            except Exception:
                self.failed += 1

    def close(self) -> None:
        """Shutdown the handler."""
        self._shutdown.set()
        self._worker.join(timeout=1.0)
        super().close()


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "category"):
            log_data["category"] = record.category
        if hasattr(record, "symbol"):
            log_data["symbol"] = record.symbol
        if hasattr(record, "latency_ns"):
            log_data["latency_ns"] = record.latency_ns
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        return json.dumps(log_data, default=str)


class EngineLogger:
    """
    Categorized logger for engine components.

    Provides:
    - Categorized logging
    - Latency tracking integration
    - Audit helpers for signals, risk events and position closes
    """

    _instance: Optional['EngineLogger'] = None
    _latency_tracker: LatencyTracker = LatencyTracker()

    def __init__(self, name: str = "alpha_engine", level: int = logging.INFO):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        self._logger.handlers = []

        handler = AsyncLogHandler()
        handler.setFormatter(StructuredFormatter())
        handler.setLevel(logging.DEBUG)
        self._logger.addHandler(handler)

        # Human-readable console for warnings and above
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(
            '%(asctime)s.%(msecs)03d | %(levelname)-8s | %(message)s',
            datefmt='%H:%M:%S'
        ))
        console.setLevel(logging.WARNING)
        self._logger.addHandler(console)

    @classmethod
    def get_instance(cls) -> 'EngineLogger':
        """Singleton pattern for global logger access."""
        if cls._instance is None:
            cls._instance = EngineLogger()
        return cls._instance

    @classmethod
    def get_latency_tracker(cls) -> LatencyTracker:
        """Access the shared latency tracker."""
        return cls._latency_tracker

    def set_level(self, level: str) -> None:
        """Set level by name ("DEBUG", "INFO", ...)."""
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    def log(
        self,
        level: int,
        message: str,
        category: LogCategory = LogCategory.SYSTEM,
        symbol: Optional[str] = None,
        **kwargs
    ) -> None:
        """
        Log a message with engine-specific context.
        """
        extra = {
            "category": category.value,
            "extra_data": kwargs
        }
        if symbol:
            extra["symbol"] = symbol
        if "latency_ns" in kwargs:
            extra["latency_ns"] = kwargs.pop("latency_ns")

        self._logger.log(level, message, extra=extra)

    def debug(self, message: str, **kwargs) -> None:
        self.log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log(logging.CRITICAL, message, **kwargs)

    @contextmanager
    def measure_latency(
        self,
        operation: str,
        category: LogCategory = LogCategory.PERFORMANCE,
        log_level: int = logging.DEBUG,
        **metadata
    ):
        """
        Context manager to measure and log operation latency.

        Usage:
            with logger.measure_latency("alpha_factors", symbol="AAPL"):
                factors = engine.generate_alpha_factors("AAPL")
        """
        measurement = LatencyMeasurement(
            operation=operation,
            start_ns=time.perf_counter_ns(),
            category=category,
            metadata=metadata
        )

        try:
            yield measurement
        finally:
            measurement.end_ns = time.perf_counter_ns()
            self._latency_tracker.record(measurement)

            self.log(
                log_level,
                f"{operation} completed in {measurement.duration_us:.2f}us",
                category=category,
                latency_ns=measurement.duration_ns,
                **metadata
            )

    def log_signal(
        self,
        signal_name: str,
        symbol: str,
        value: float,
        confidence: float,
        **kwargs
    ) -> None:
        """Log signal generation for analysis."""
        self.log(
            logging.DEBUG,
            f"SIGNAL: {signal_name} {symbol} = {value:.6f} (conf: {confidence:.2f})",
            category=LogCategory.SIGNAL,
            symbol=symbol,
            signal_name=signal_name,
            signal_value=value,
            confidence=confidence,
            **kwargs
        )

    def log_risk_event(
        self,
        event_type: str,
        message: str,
        severity: str = "WARNING",
        **kwargs
    ) -> None:
        """
        Log risk management events.

        CRITICAL severity is reserved for emergency stops.
        """
        level = logging.WARNING if severity == "WARNING" else logging.CRITICAL
        self.log(
            level,
            f"RISK [{event_type}]: {message}",
            category=LogCategory.RISK,
            event_type=event_type,
            severity=severity,
            **kwargs
        )

    def log_position_closed(
        self,
        symbol: str,
        quantity: float,
        exit_price: float,
        realized_pnl: float,
        reason: str,
        **kwargs
    ) -> None:
        """
        Audit record for a closed position.
        """
        self.log(
            logging.INFO,
            f"CLOSE [{reason}]: {quantity:+g} {symbol} @ {exit_price:.4f} pnl={realized_pnl:+.2f}",
            category=LogCategory.AUDIT,
            symbol=symbol,
            quantity=quantity,
            exit_price=exit_price,
            realized_pnl=realized_pnl,
            reason=reason,
            **kwargs
        )


# Global logger instance
logger = EngineLogger.get_instance()


def get_logger() -> EngineLogger:
    """Get the global engine logger instance."""
    return logger


def get_latency_stats() -> Dict[str, Dict[str, float]]:
    """Get latency statistics for all tracked operations."""
    return EngineLogger.get_latency_tracker().get_all_stats()
