"""CloudWatch metrics for every upstream call (GoHighLevel, JobTread, Anthropic).

Each call produces a request count, a latency sample and, on failure, an
error count tagged with the exception class.  Data points are buffered in
memory and pushed by a daemon thread once a minute, in batches of at most
1 000 (the ``PutMetricData`` limit).  Outside AWS (``METRICS_ENABLED`` not
``"true"``) the buffer is drained without sending anything.

>>> from client_assistant.services.metrics import metrics
>>> async with metrics.track("ghl", "GET /contacts"):
...     ...
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "ClientAssistant"
FLUSH_INTERVAL_SECONDS = 60
PUT_BATCH_LIMIT = 1_000

REQUEST_COUNT = "ExternalAPI/RequestCount"
ERROR_COUNT = "ExternalAPI/ErrorCount"
LATENCY = "ExternalAPI/Latency"


class MetricsClient:
    """Buffers upstream-call metrics and ships them to CloudWatch."""

    def __init__(self, enabled: bool | None = None) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None
        if enabled:
            self._start_flush_thread()

    @asynccontextmanager
    async def track(self, service: str, operation: str) -> AsyncIterator[None]:
        """Time the wrapped block; exceptions are recorded and re-raised."""
        started = time.perf_counter()
        try:
            yield
        except Exception as exc:
            elapsed = (time.perf_counter() - started) * 1000
            self.record_failure(service, operation, type(exc).__name__, elapsed)
            raise
        self.record_success(service, operation, (time.perf_counter() - started) * 1000)

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        self._record(service, operation, "success", latency_ms)

    def record_failure(
        self, service: str, operation: str, error_type: str, latency_ms: float = 0,
    ) -> None:
        self._record(service, operation, "failure", latency_ms, error_type)

    def flush(self) -> int:
        """Push everything buffered so far; returns the number of points sent."""
        batch = self._drain()
        if not batch:
            return 0
        if not self._enabled:
            logger.debug("Dropped %d metric points (metrics disabled)", len(batch))
            return 0

        sent = 0
        try:
            if self._cw_client is None:
                import boto3

                self._cw_client = boto3.client("cloudwatch")
            for start in range(0, len(batch), PUT_BATCH_LIMIT):
                chunk = batch[start : start + PUT_BATCH_LIMIT]
                self._cw_client.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
        except Exception:
            logger.exception("CloudWatch put_metric_data failed after %d points", sent)
        else:
            logger.info("Sent %d metric points to CloudWatch", sent)
        return sent

    def _record(
        self,
        service: str,
        operation: str,
        status: str,
        latency_ms: float,
        error_type: str | None = None,
    ) -> None:
        now = datetime.now(UTC)
        service_dim = {"Name": "Service", "Value": service}
        points = [
            _datum(REQUEST_COUNT, [service_dim, {"Name": "Status", "Value": status}], now, 1, "Count"),
        ]
        if error_type is not None:
            points.append(_datum(
                ERROR_COUNT, [service_dim, {"Name": "ErrorType", "Value": error_type}], now, 1, "Count",
            ))
        if latency_ms > 0 or error_type is None:
            points.append(_datum(
                LATENCY, [service_dim, {"Name": "Operation", "Value": operation}],
                now, latency_ms, "Milliseconds",
            ))
        with self._lock:
            self._buffer.extend(points)
        logger.debug(
            "%s %s %s in %.1fms%s", service, operation, status, latency_ms,
            f" ({error_type})" if error_type else "",
        )

    def _drain(self) -> list[dict[str, Any]]:
        with self._lock:
            batch, self._buffer = self._buffer, []
        return batch

    def _start_flush_thread(self) -> None:
        def _run():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Background metrics flush failed")

        threading.Thread(target=_run, daemon=True, name="metrics-flush").start()
        atexit.register(self.flush)
        logger.info("Publishing metrics to CloudWatch every %ds", FLUSH_INTERVAL_SECONDS)


def _datum(
    name: str,
    dimensions: list[dict[str, str]],
    timestamp: datetime,
    value: float,
    unit: str,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": dimensions,
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


metrics = MetricsClient()
