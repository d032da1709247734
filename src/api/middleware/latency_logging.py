"""Request latency logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds). Checkout waits on the payment
# provider, so the warning threshold sits above its default timeout.
SLOW_REQUEST_THRESHOLD_MS = 2000
VERY_SLOW_REQUEST_THRESHOLD_MS = 6000

QUIET_PATHS = frozenset({"/health", "/health/ready"})


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency for every request.

    Health probes are logged at debug. Slow requests and server errors are
    raised to warning and error so they show up without debug logging.
    """
    start_time = time.perf_counter()
    method = request.method
    path = request.url.path

    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        log_data = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "latency_ms": round(latency_ms, 2),
        }
        log_msg = f"{method} {path} - {status_code} - {latency_ms:.2f}ms"

        if path in QUIET_PATHS:
            logger.debug(log_msg, extra=log_data)
        elif status_code >= 500 or latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
            logger.error(log_msg, extra=log_data)
        elif latency_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(f"SLOW REQUEST: {log_msg}", extra=log_data)
        elif status_code >= 400:
            logger.warning(log_msg, extra=log_data)
        else:
            logger.info(log_msg, extra=log_data)
