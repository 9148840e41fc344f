"""Structured logging helpers for latency and counters."""

import logging
import time
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


@contextmanager
def timed_operation(operation_name: str, **extra: Any):
    """Log how long the wrapped block took and whether it raised.

    Usage:
        with timed_operation("response_classification", debt_id=debt.id):
            analysis = await classifier.run(request)

    The exception, if any, is re-raised after logging.
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(
            f"{operation_name} failed",
            extra={
                "metric_type": operation_name,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "success": False,
                "error": str(e),
                "error_type": type(e).__name__,
                **extra,
            },
        )
        raise
    logger.info(
        f"{operation_name} completed",
        extra={
            "metric_type": operation_name,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "success": True,
            **extra,
        },
    )


def log_metric(metric_type: str, **data: Any) -> None:
    """Log a single metric event, e.g. ``log_metric("fallback_used", component="classifier")``."""
    logger.info(metric_type, extra={"metric_type": metric_type, **data})
