"""
Request Timing Middleware for HoopSense
Times every request and binds a correlation ID so all logs of one request
can be tied together.
"""

import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from config import get_thresholds
from logging_config import new_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)


class PerformanceMiddleware(BaseHTTPMiddleware):
    """
    Adds X-Correlation-ID and X-Process-Time-Ms headers and logs each
    request. Frame uploads slower than the frame latency target are
    logged as warnings.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or new_correlation_id()
        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.2f}"

        # Health probes are too frequent to log
        if request.url.path.startswith("/health"):
            return response

        slow_ms = get_thresholds().performance.latency_target_sec * 1000
        slow = request.url.path == "/api/frames" and duration_ms > slow_ms
        logger.log(
            logging.WARNING if slow else logging.INFO,
            f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.2f}ms)",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "slow": slow
            }
        )
        return response
